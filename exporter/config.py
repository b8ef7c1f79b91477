from typing import Literal

from pydantic import PositiveFloat, PositiveInt
from pydantic_settings import BaseSettings

LogFormat = Literal['json', 'text']


class Settings(BaseSettings):
    model_config = {
        'extra': 'ignore',
        'env_file': '.env',
        'env_file_encoding': 'utf-8',
        'frozen': True,
    }

    SERVICE_NAME: str = 'flowmetry-exporter'
    SERVICE_VERSION: str = '0.1.0'
    LOG_LEVEL: str = 'INFO'
    LOG_FORMAT: LogFormat = 'json'

    # Value of the ``server`` base dimension attached to every record
    SERVER_NAME: str = 'localhost'
    # Comma-separated driver names, e.g. ``cloudwatch,redis_stream``
    DRIVERS: str = ''
    DRIVER_SHUTDOWN_TIMEOUT: PositiveFloat = 10.0
    FAILURE_WARNING_THRESHOLD: PositiveInt = 5

    PROCESS_METRICS_ENABLED: bool = True

    HEALTH_SERVER_ENABLED: bool = True
    HEALTH_SERVER_HOST: str = '0.0.0.0'
    HEALTH_SERVER_PORT: int = 8080

    @property
    def driver_names(self) -> list[str]:
        return [name.strip() for name in self.DRIVERS.split(',') if name.strip()]


settings = Settings()
