from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json


class Settings(BaseSettings):
    """
    Workforce planning service settings.

    Everything is read from the environment (or .env); DATABASE_URL and
    SECRET_KEY have no defaults and must be provided.
    """

    # Storage
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30  # seconds
    DB_POOL_RECYCLE: int = 1800  # seconds
    DB_CONNECT_TIMEOUT: int = 30  # seconds, PostgreSQL only
    AUTO_CREATE_TABLES: bool = False

    # Bearer tokens. Issued by the identity provider with the shared key.
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Service
    APP_NAME: str = "Workforce Planning API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    # Budget check: unused share of the hiring budget above which a plan is UNDER
    UNDER_BUDGET_THRESHOLD_PERCENT: float = 20.0

    # Monitoring: overrun of the hiring budget that raises an alert, and that makes it HIGH
    BUDGET_OVERRUN_ALERT_PERCENT: float = 5.0
    BUDGET_OVERRUN_HIGH_PERCENT: float = 15.0

    # List endpoints
    DEFAULT_PAGE_SIZE: int = 25
    MAX_PAGE_SIZE: int = 100

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, v):
        """Accept a JSON array or a comma-separated string."""
        if not isinstance(v, str):
            return v
        if v.lstrip().startswith("["):
            return json.loads(v)
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    @field_validator("UNDER_BUDGET_THRESHOLD_PERCENT")
    @classmethod
    def check_threshold(cls, v):
        if not 0 <= v <= 100:
            raise ValueError("UNDER_BUDGET_THRESHOLD_PERCENT must be between 0 and 100")
        return v

    @field_validator("BUDGET_OVERRUN_ALERT_PERCENT", "BUDGET_OVERRUN_HIGH_PERCENT")
    @classmethod
    def check_overrun_percent(cls, v):
        if v < 0:
            raise ValueError("Budget overrun alert percentages cannot be negative")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
