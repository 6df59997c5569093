from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "GuideTrip API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # Scheduled jobs (Celery beat)
    CELERY_TIMEZONE: str = "Asia/Shanghai"
    AUTO_CANCEL_INTERVAL_SECONDS: float = 300.0
    AUTO_SETTLE_INTERVAL_SECONDS: float = 3600.0
    SETTLE_BATCH_SIZE: int = 100
    SETTLE_MAX_ROWS: int = 10000  # hard ceiling per auto-settle run


settings = Settings()
