from pydantic import PositiveInt
from pydantic_settings import BaseSettings


class RedisStreamSettings(BaseSettings):
    model_config = {
        'extra': 'ignore',
        'env_file': '.env',
        'env_file_encoding': 'utf-8',
        'env_prefix': 'REDIS_STREAM_',
        'frozen': True,
    }

    PUSH_INTERVAL_SECONDS: PositiveInt
    # Stream key the points are appended to
    NAMESPACE: str
    HOST: str = 'localhost'
    PORT: int = 6379
    DB: int = 0
    PASSWORD: str | None = None
    SSL: bool = False
    # Approximate stream length cap, unbounded when unset
    MAX_LEN: PositiveInt | None = None
    CHUNK_SIZE: PositiveInt = 500
    BASE_DIMENSIONS: dict[str, str] = {}
