import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import logging
import signal

from exporter.collector import MetricsManager
from exporter.config import settings
from exporter.health_server import HealthServer
from exporter.log_setup import setup_logging
from exporter.process_metrics import ProcessMetrics
from exporter.registry import DriverRegistry, default_registry

setup_logging(
    service_name=settings.SERVICE_NAME,
    level=settings.LOG_LEVEL,
    log_format=settings.LOG_FORMAT,
    version=settings.SERVICE_VERSION,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(
    manager: MetricsManager | None = None,
) -> AsyncGenerator[DriverRegistry, None]:
    manager = manager or MetricsManager()
    if settings.PROCESS_METRICS_ENABLED:
        manager.register_collection(ProcessMetrics())

    registry = default_registry()
    if not settings.driver_names:
        logger.warning('No metrics drivers configured, nothing will be exported')
    registry.start(settings.driver_names, manager, settings)

    health_server: HealthServer | None = None
    try:
        if settings.HEALTH_SERVER_ENABLED:
            health_server = HealthServer(
                settings.HEALTH_SERVER_HOST,
                settings.HEALTH_SERVER_PORT,
                registry,
                failure_threshold=settings.FAILURE_WARNING_THRESHOLD,
            )
            await health_server.start()
        yield registry
    finally:
        logger.info('Shutting down...')
        await registry.close_all()
        if health_server is not None:
            await health_server.stop()
        logger.info('Shutdown complete')


async def main() -> None:
    shutdown_event = asyncio.Event()

    for sig in [signal.SIGTERM, signal.SIGINT]:
        asyncio.get_running_loop().add_signal_handler(sig, shutdown_event.set)

    async with lifespan():
        await shutdown_event.wait()


def run() -> None:
    asyncio.run(main())


if __name__ == '__main__':
    run()
