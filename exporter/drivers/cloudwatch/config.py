from pydantic import PositiveInt
from pydantic_settings import BaseSettings


class CloudwatchSettings(BaseSettings):
    model_config = {
        'extra': 'ignore',
        'env_file': '.env',
        'env_file_encoding': 'utf-8',
        'env_prefix': 'CLOUDWATCH_',
        'frozen': True,
    }

    PUSH_INTERVAL_SECONDS: PositiveInt
    NAMESPACE: str
    REGION_NAME: str
    PROFILE_NAME: str | None = None
    ENDPOINT_URL: str | None = None
    BASE_DIMENSIONS: dict[str, str] = {}
