"""Application configuration"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Stream monitor settings.

    ``DLQ_NAME`` and the basic auth credentials have no defaults, so a missing
    value fails at construction time instead of on the first request.
    """

    # Redis settings
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None
    REDIS_URL_OVERRIDE: str | None = None

    # Dead letter queue written by the poison queue middleware
    DLQ_NAME: str

    # HTTP basic auth
    MONITOR_USERNAME: str
    MONITOR_PASSWORD: str

    # Fan-out limits
    FETCH_CONCURRENCY: int = Field(default=10, ge=1)
    REQUEUE_CONCURRENCY: int = Field(default=10, ge=1)
    REQUEUE_PAGE_SIZE: int = Field(default=100, ge=1)
    SCAN_COUNT: int = Field(default=100, ge=1)

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON_FORMAT: bool = True
    ENVIRONMENT: str = "production"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)

    @field_validator("DLQ_NAME", "MONITOR_USERNAME", "MONITOR_PASSWORD")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be empty")
        return value

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_URL_OVERRIDE:
            return self.REDIS_URL_OVERRIDE
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


@lru_cache
def get_settings() -> Settings:
    return Settings()
