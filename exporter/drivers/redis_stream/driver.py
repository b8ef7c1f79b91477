from types import MappingProxyType

from exporter.collector import MetricsCollector
from exporter.config import Settings
from exporter.driver import ExportClient, PeriodicExportDriver
from exporter.drivers.redis_stream.client import RedisStreamClient
from exporter.drivers.redis_stream.config import RedisStreamSettings
from exporter.mapper import CapabilityTable, PayloadMapper, histogram_buckets, scalar
from exporter.schemas import MetricKind

# Histograms are expanded into ``_bucket``/``_count``/``_sum`` counter points.
REDIS_STREAM_CAPABILITIES: CapabilityTable = MappingProxyType(
    {
        MetricKind.COUNTER: scalar,
        MetricKind.GAUGE: scalar,
        MetricKind.HISTOGRAM: histogram_buckets,
    }
)


class RedisStreamMetricsDriver(PeriodicExportDriver):
    def __init__(
        self,
        collector: MetricsCollector,
        config: RedisStreamSettings,
        server_name: str,
        client: ExportClient | None = None,
        shutdown_timeout: float = 10.0,
        failure_warning_threshold: int = 5,
    ) -> None:
        mapper = PayloadMapper(
            REDIS_STREAM_CAPABILITIES,
            base_dimensions=[('server', server_name), *config.BASE_DIMENSIONS.items()],
        )
        super().__init__(
            name='redis_stream',
            collector=collector,
            mapper=mapper,
            client=client
            or RedisStreamClient(
                host=config.HOST,
                port=config.PORT,
                db=config.DB,
                password=config.PASSWORD,
                ssl=config.SSL,
                max_len=config.MAX_LEN,
            ),
            namespace=config.NAMESPACE,
            interval_seconds=config.PUSH_INTERVAL_SECONDS,
            max_chunk_size=config.CHUNK_SIZE,
            shutdown_timeout=shutdown_timeout,
            failure_warning_threshold=failure_warning_threshold,
        )


def create_redis_stream_driver(
    collector: MetricsCollector, settings: Settings
) -> RedisStreamMetricsDriver:
    return RedisStreamMetricsDriver(
        collector,
        RedisStreamSettings(),  # type: ignore[call-arg]
        server_name=settings.SERVER_NAME,
        shutdown_timeout=settings.DRIVER_SHUTDOWN_TIMEOUT,
        failure_warning_threshold=settings.FAILURE_WARNING_THRESHOLD,
    )
