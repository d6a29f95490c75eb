"""
Environment-driven settings for the soap shop backend.

Values are read from the process environment or a local ``.env`` file and
then consumed by ``config.settings``.
"""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ==============================
    # Application
    # ==============================
    APP_NAME: str = "Soap Shop API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    SECRET_KEY: str = "dev-insecure-secret-key-change-me"
    ALLOWED_HOSTS: str = "localhost,127.0.0.1"

    # ==============================
    # Database
    # ==============================
    # Empty POSTGRES_DB falls back to a local SQLite file.
    POSTGRES_DB: str = ""
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    SQLITE_PATH: str = "db.sqlite3"
    DB_CONNECT_TIMEOUT: int = 10

    # ==============================
    # Logging
    # ==============================
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # ==============================
    # Redis / Celery
    # ==============================
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_TASK_ALWAYS_EAGER: bool = False
    RATE_LIMIT_ENABLED: bool = True

    # ==============================
    # Security
    # ==============================
    JWT_SECRET: Optional[str] = None
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_HOURS: int = 24

    # ==============================
    # E-Mail
    # ==============================
    EMAIL_BACKEND: str = "django.core.mail.backends.console.EmailBackend"
    EMAIL_HOST: str = "localhost"
    EMAIL_PORT: int = 25
    EMAIL_HOST_USER: str = ""
    EMAIL_HOST_PASSWORD: str = ""
    EMAIL_USE_TLS: bool = False
    DEFAULT_FROM_EMAIL: str = "Gluecksmoment Manufaktur <info@localhost>"
    EMAIL_MAX_ATTEMPTS: int = 3
    EMAIL_PENDING_STALE_MINUTES: int = 10

    # ==============================
    # Shop rules
    # ==============================
    SHOP_NAME: str = "Glücksmomente Manufaktur"
    SHOP_TAX_RATE: float = 19.0
    SHOP_SHIPPING_COST: float = 5.99
    SHOP_FREE_SHIPPING_FROM: float = 30.0


@lru_cache
def get_settings() -> Settings:
    """Cached settings loader (once per process)."""
    return Settings()


__all__ = ["Settings", "get_settings"]
