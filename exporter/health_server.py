import logging

from aiohttp import web
import orjson

from exporter.registry import DriverRegistry

logger = logging.getLogger(__name__)


def _dumps(obj: object) -> str:
    return orjson.dumps(obj).decode('utf-8')


class HealthServer:
    """Minimal async HTTP server reporting the state of every running driver.

    ``status`` is ``degraded`` once any driver has failed
    ``failure_threshold`` cycles in a row.
    """

    def __init__(
        self, host: str, port: int, registry: DriverRegistry, failure_threshold: int
    ) -> None:
        self.host = host
        self.port = port
        self.registry = registry
        self.failure_threshold = failure_threshold
        self._runner: web.AppRunner | None = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get('/health', self._health_handler)
        return app

    async def start(self) -> None:
        if self._runner is not None:
            return
        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info(f'Health server started on {self.host}:{self.port}/health')

    async def stop(self) -> None:
        if self._runner is None:
            return
        await self._runner.cleanup()
        self._runner = None
        logger.info('Health server stopped')

    async def _health_handler(self, _request: web.Request) -> web.Response:
        statuses = [driver.status() for driver in self.registry.drivers]
        degraded = any(
            status.consecutive_failures >= self.failure_threshold
            for status in statuses
        )
        return web.json_response(
            {
                'status': 'degraded' if degraded else 'ok',
                'drivers': [status.model_dump(mode='json') for status in statuses],
            },
            dumps=_dumps,
        )
