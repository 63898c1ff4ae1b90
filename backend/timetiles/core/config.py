from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: str = Field(default="dev")  # dev|prod|test

    # DB
    DATABASE_URL: str = Field(default="postgresql+psycopg://app:app@db:5432/timetiles")

    # HTTP
    API_PREFIX: str = Field(default="")
    CORS_ORIGINS: str = Field(default="http://localhost:3000,http://localhost")

    # Celery / Redis
    REDIS_URL: str = Field(default="redis://redis:6379/0")

    # Files
    UPLOAD_DIR: str = Field(default="/app/data/uploads")

    # Batching
    BATCH_SIZE: int = Field(default=100)
    EVENT_BATCH_SIZE: int = Field(default=1000)

    # URL fetch
    URL_FETCH_MAX_SIZE_MB: int = Field(default=100)
    URL_FETCH_TIMEOUT_MINUTES: float = Field(default=30)
    URL_FETCH_MAX_RETRIES: int = Field(default=3)
    URL_FETCH_RETRY_DELAY_MINUTES: float = Field(default=0.1)
    URL_FETCH_EXPONENTIAL_BACKOFF: bool = Field(default=True)

    # Daily quotas (0 = unlimited)
    QUOTA_URL_FETCHES_PER_DAY: int = Field(default=50)
    QUOTA_FILE_UPLOADS_PER_DAY: int = Field(default=20)
    QUOTA_IMPORT_JOBS_PER_DAY: int = Field(default=100)

    # Maintenance
    LOCK_CLEANUP_INTERVAL_MINUTES: int = Field(default=5)
    SCHEDULE_CHECK_INTERVAL_MINUTES: int = Field(default=1)

    # Geocoding (external, Nominatim-compatible). Empty = disabled
    GEOCODING_URL: str = Field(default="")
    GEOCODING_TIMEOUT_S: float = Field(default=10.0)


settings = Settings()
