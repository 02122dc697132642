"""Application configuration via environment variables."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./event_manager.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Auth
    SECRET_KEY: str = "change-me-in-production-please-0123456789"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: Optional[int] = None  # tokens never expire unless set
    BCRYPT_ROUNDS: int = 12

    # Outbound mail; an empty host logs messages instead of sending them
    MAIL_HOST: str = ""
    MAIL_PORT: int = 587
    MAIL_USERNAME: str = ""
    MAIL_PASSWORD: str = ""
    MAIL_FROM: str = "no-reply@localhost"
    MAIL_USE_TLS: bool = True

    # Event images
    MEDIA_ROOT: str = "./media"
    MEDIA_URL: str = "/media"

    DEFAULT_TIMEZONE: str = "UTC"  # IANA tz applied to naive datetimes

    class Config:
        env_file = ".env"


settings = Settings()
