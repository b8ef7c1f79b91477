from collections.abc import Sequence
import logging
from typing import Any

import orjson
from redis.asyncio import Redis
from redis.exceptions import RedisError

from exporter.driver import ExportClient
from exporter.errors import BackendError
from exporter.schemas import BackendRecord

logger = logging.getLogger(__name__)


class RedisStreamClient(ExportClient):
    """Appends records to a Redis stream, one pipeline per chunk.

    Each entry carries a ``data`` field with the JSON-encoded metric point.
    The connection is opened on the first send and reopened after a failed
    start.
    """

    backend = 'redis_stream'

    def __init__(
        self,
        host: str,
        port: int,
        db: int,
        password: str | None,
        ssl: bool = False,
        max_len: int | None = None,
        redis: Redis | None = None,
    ):
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.ssl = ssl
        self.max_len = max_len

        self._redis: Redis | None = redis

    async def start(self) -> Redis:
        if self._redis is not None:
            return self._redis

        logger.info(
            'Initializing Redis stream client',
            extra={'host': self.host, 'port': self.port, 'db': self.db},
        )
        redis = Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            ssl=self.ssl,
            decode_responses=False,
        )
        try:
            await redis.ping()
        except RedisError:
            await redis.aclose()
            raise
        self._redis = redis
        return redis

    async def close(self) -> None:
        if self._redis:
            logger.info('Stopping Redis stream client')
            await self._redis.aclose()
            self._redis = None
            logger.info('Redis stream client stopped')

    @staticmethod
    def to_point(record: BackendRecord) -> dict[str, Any]:
        timestamp = record.timestamp
        return {
            'name': record.metric_name,
            'description': '',
            'unit': '',
            'type': record.kind,
            'timestamp_nano': int(timestamp.timestamp()) * 1_000_000_000
            + timestamp.microsecond * 1_000,
            'attributes': dict(record.dimensions),
            'value': record.numeric_value,
        }

    async def send(self, namespace: str, records: Sequence[BackendRecord]) -> None:
        try:
            redis = await self.start()
            async with redis.pipeline(transaction=False) as pipe:
                for record in records:
                    pipe.xadd(
                        namespace,
                        {'data': orjson.dumps(self.to_point(record))},
                        maxlen=self.max_len,
                        approximate=True,
                    )
                await pipe.execute()
        except RedisError as e:
            raise BackendError(self.backend, str(e)) from e
        logger.debug(
            'Records appended to Redis stream',
            extra={'stream': namespace, 'records': len(records)},
        )
