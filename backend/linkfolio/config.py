from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "LinkFolio"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    BASE_URL: str = "http://localhost:8000"

    # Database
    DATABASE_URL: str = "sqlite:///./linkfolio.db"

    # Redis (rate limiting)
    REDIS_ENABLED: bool = True
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    # Session tokens
    ACCESS_TOKEN_SECRET: str = "change-me-access-secret"
    REFRESH_TOKEN_SECRET: str = "change-me-refresh-secret"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    COOKIE_SECURE: bool = False
    COOKIE_SAMESITE: str = "strict"
    BCRYPT_ROUNDS: int = 10

    # Link settings
    SHORT_ID_LENGTH: int = 8
    SHORT_ID_MAX_ATTEMPTS: int = 10
    MIN_CUSTOM_ID_LENGTH: int = 3
    MAX_CUSTOM_ID_LENGTH: int = 20
    REDIRECT_STATUS_CODE: int = 302

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Geolocation
    GEOIP_ENABLED: bool = True
    GEOIP_URL: str = "http://ip-api.com/json/{ip}?fields=status,country,city"
    GEOIP_TIMEOUT: float = 2.0

    # Rate limiting (per client IP, per hour)
    RATE_LIMIT_PER_HOUR: int = 30
    LOGIN_RATE_LIMIT_PER_HOUR: int = 20

    BLOCKED_DOMAINS: List[str] = []
    CORS_ORIGINS: List[str] = ["*"]

    # Background maintenance
    CLEANUP_ENABLED: bool = True
    CLEANUP_INTERVAL_HOURS: int = 1

    # Resolve backend/.env relative to this file so settings load correctly
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[1] / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def uses_default_secrets(self) -> bool:
        return (
            self.ACCESS_TOKEN_SECRET.startswith("change-me")
            or self.REFRESH_TOKEN_SECRET.startswith("change-me")
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
