from types import MappingProxyType

from exporter.collector import MetricsCollector
from exporter.config import Settings
from exporter.driver import ExportClient, PeriodicExportDriver
from exporter.drivers.cloudwatch.client import CloudwatchClient
from exporter.drivers.cloudwatch.config import CloudwatchSettings
from exporter.mapper import CapabilityTable, PayloadMapper, finite_scalar
from exporter.schemas import MetricKind

# CloudWatch has no histogram datum and rejects NaN and infinite values.
CLOUDWATCH_CAPABILITIES: CapabilityTable = MappingProxyType(
    {
        MetricKind.COUNTER: finite_scalar,
        MetricKind.GAUGE: finite_scalar,
    }
)

MAX_DATUMS_PER_REQUEST = 150


class CloudwatchMetricsDriver(PeriodicExportDriver):
    def __init__(
        self,
        collector: MetricsCollector,
        config: CloudwatchSettings,
        server_name: str,
        client: ExportClient | None = None,
        shutdown_timeout: float = 10.0,
        failure_warning_threshold: int = 5,
    ) -> None:
        mapper = PayloadMapper(
            CLOUDWATCH_CAPABILITIES,
            base_dimensions=[('server', server_name), *config.BASE_DIMENSIONS.items()],
        )
        super().__init__(
            name='cloudwatch',
            collector=collector,
            mapper=mapper,
            client=client
            or CloudwatchClient(
                region_name=config.REGION_NAME,
                profile_name=config.PROFILE_NAME,
                endpoint_url=config.ENDPOINT_URL,
            ),
            namespace=config.NAMESPACE,
            interval_seconds=config.PUSH_INTERVAL_SECONDS,
            max_chunk_size=MAX_DATUMS_PER_REQUEST,
            shutdown_timeout=shutdown_timeout,
            failure_warning_threshold=failure_warning_threshold,
        )


def create_cloudwatch_driver(
    collector: MetricsCollector, settings: Settings
) -> CloudwatchMetricsDriver:
    return CloudwatchMetricsDriver(
        collector,
        CloudwatchSettings(),  # type: ignore[call-arg]
        server_name=settings.SERVER_NAME,
        shutdown_timeout=settings.DRIVER_SHUTDOWN_TIMEOUT,
        failure_warning_threshold=settings.FAILURE_WARNING_THRESHOLD,
    )
