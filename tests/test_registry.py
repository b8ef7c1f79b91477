import logging

from aiohttp import test_utils
from conftest import FakeCollector
import pytest

from exporter.config import Settings
from exporter.driver import DriverState, DriverStatus, MetricsDriver
from exporter.health_server import HealthServer
from exporter.registry import DriverRegistry, default_registry


class FakeDriver(MetricsDriver):
    def __init__(self, name: str, consecutive_failures: int = 0, fail_close=False):
        self.name = name
        self.consecutive_failures = consecutive_failures
        self.fail_close = fail_close
        self._state = DriverState.CREATED

    @property
    def state(self) -> DriverState:
        return self._state

    def initialize(self) -> None:
        self._state = DriverState.RUNNING

    async def close(self) -> None:
        self._state = DriverState.STOPPED
        if self.fail_close:
            raise RuntimeError('close failed')

    def status(self) -> DriverStatus:
        return DriverStatus(
            driver=self.name,
            state=self._state,
            cycles=3,
            failed_cycles=self.consecutive_failures,
            consecutive_failures=self.consecutive_failures,
            last_success=None,
        )


def _factory(driver: FakeDriver):
    def create(collector, settings):
        return driver

    return create


def _broken_factory(collector, settings):
    raise ValueError('CLOUDWATCH_NAMESPACE is required')


def test_default_registry_knows_every_backend():
    assert default_registry().names == ['cloudwatch', 'redis_stream']


def test_duplicate_name_is_rejected():
    registry = DriverRegistry()
    registry.register('fake', _factory(FakeDriver('fake')))

    with pytest.raises(ValueError):
        registry.register('fake', _factory(FakeDriver('fake')))


class TestRegistryLifecycle:
    @pytest.mark.asyncio
    async def test_bad_drivers_do_not_block_good_ones(self, caplog):
        good = FakeDriver('good')
        registry = DriverRegistry()
        registry.register('good', _factory(good))
        registry.register('broken', _broken_factory)

        started = registry.start(
            ['missing', 'broken', 'good'], FakeCollector(), Settings()
        )

        assert started == [good]
        assert registry.drivers == (good,)
        assert good.state is DriverState.RUNNING
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert [r.driver for r in errors] == ['missing', 'broken']

    @pytest.mark.asyncio
    async def test_start_skips_driver_already_running(self):
        driver = FakeDriver('good')
        registry = DriverRegistry()
        registry.register('good', _factory(driver))

        registry.start(['good'], FakeCollector(), Settings())
        assert registry.start(['good'], FakeCollector(), Settings()) == []

    @pytest.mark.asyncio
    async def test_close_all_closes_every_driver(self, caplog):
        first = FakeDriver('first', fail_close=True)
        second = FakeDriver('second')
        registry = DriverRegistry()
        registry.register('first', _factory(first))
        registry.register('second', _factory(second))
        registry.start(['first', 'second'], FakeCollector(), Settings())

        await registry.close_all()

        assert first.state is DriverState.STOPPED
        assert second.state is DriverState.STOPPED
        assert registry.drivers == ()
        assert any(
            r.getMessage() == 'Failed to close metrics driver' for r in caplog.records
        )


class TestHealthServer:
    @staticmethod
    async def _get_health(registry: DriverRegistry) -> dict:
        server = HealthServer('127.0.0.1', 0, registry, failure_threshold=5)
        async with test_utils.TestClient(
            test_utils.TestServer(server.create_app())
        ) as client:
            response = await client.get('/health')
            assert response.status == 200
            return await response.json()

    @pytest.mark.asyncio
    async def test_reports_driver_status(self):
        registry = DriverRegistry()
        registry.register('cloudwatch', _factory(FakeDriver('cloudwatch')))
        registry.start(['cloudwatch'], FakeCollector(), Settings())

        body = await self._get_health(registry)

        assert body['status'] == 'ok'
        assert body['drivers'] == [
            {
                'driver': 'cloudwatch',
                'state': 'running',
                'cycles': 3,
                'failed_cycles': 0,
                'consecutive_failures': 0,
                'last_success': None,
            }
        ]

    @pytest.mark.asyncio
    async def test_degraded_when_a_driver_keeps_failing(self):
        registry = DriverRegistry()
        flaky = FakeDriver('flaky', consecutive_failures=5)
        registry.register('flaky', _factory(flaky))
        registry.start(['flaky'], FakeCollector(), Settings())

        body = await self._get_health(registry)

        assert body['status'] == 'degraded'
