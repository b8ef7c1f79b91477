import asyncio
from collections.abc import Callable, Iterable
import logging

from exporter.collector import MetricsCollector
from exporter.config import Settings
from exporter.driver import MetricsDriver
from exporter.drivers.cloudwatch.driver import create_cloudwatch_driver
from exporter.drivers.redis_stream.driver import create_redis_stream_driver

logger = logging.getLogger(__name__)

DriverFactory = Callable[[MetricsCollector, Settings], MetricsDriver]


class DriverRegistry:
    """Maps driver names to factories and owns the drivers it started."""

    def __init__(self) -> None:
        self._factories: dict[str, DriverFactory] = {}
        self._drivers: dict[str, MetricsDriver] = {}

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)

    @property
    def drivers(self) -> tuple[MetricsDriver, ...]:
        return tuple(self._drivers.values())

    def register(self, name: str, factory: DriverFactory) -> None:
        if name in self._factories:
            raise ValueError(f'Driver {name!r} is already registered')
        self._factories[name] = factory

    def start(
        self,
        names: Iterable[str],
        collector: MetricsCollector,
        settings: Settings,
    ) -> list[MetricsDriver]:
        """Create and initialize the named drivers.

        Unknown names and drivers whose construction fails are logged and
        skipped so one bad configuration never blocks the other drivers.
        """
        started: list[MetricsDriver] = []
        for name in names:
            if name in self._drivers:
                logger.warning('Driver already running', extra={'driver': name})
                continue
            factory = self._factories.get(name)
            if factory is None:
                logger.error(
                    'Unknown metrics driver',
                    extra={'driver': name, 'available': self.names},
                )
                continue
            try:
                driver = factory(collector, settings)
                driver.initialize()
            except Exception as e:
                logger.exception(
                    'Failed to start metrics driver',
                    extra={'driver': name, 'error': str(e)},
                )
                continue
            self._drivers[name] = driver
            started.append(driver)
            logger.info('Metrics driver started', extra={'driver': name})
        return started

    async def close_all(self) -> None:
        drivers = list(self._drivers.values())
        self._drivers.clear()
        results = await asyncio.gather(
            *(driver.close() for driver in drivers), return_exceptions=True
        )
        for driver, result in zip(drivers, results, strict=True):
            if isinstance(result, BaseException):
                logger.error(
                    'Failed to close metrics driver',
                    extra={'driver': driver.name, 'error': str(result)},
                )


def default_registry() -> DriverRegistry:
    registry = DriverRegistry()
    registry.register('cloudwatch', create_cloudwatch_driver)
    registry.register('redis_stream', create_redis_stream_driver)
    return registry
