"""Application settings loaded from environment / .env."""

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite+aiosqlite:///./fundraiser.db"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ADMIN_JWT_EXPIRE_MINUTES: int = 60 * 12

    CORS_ORIGINS: str = "http://localhost:3000"
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_INITIATE_PER_MINUTE: int = 10

    DEFAULT_CURRENCY: str = "USD"
    PHONE_COUNTRY_CODE: str = "252"

    # WaafiPay (EVC Plus) merchant API
    WAAFI_API_URL: Optional[str] = None
    WAAFI_MERCHANT_UID: Optional[str] = None
    WAAFI_API_USER_ID: Optional[str] = None
    WAAFI_API_KEY: Optional[str] = None
    WAAFI_TIMEOUT_SECONDS: float = 30.0

    WEBHOOK_SECRET: Optional[str] = None

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
