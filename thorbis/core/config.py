from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Unset means the storage backend is unavailable; read endpoints degrade to fallback data.
    DATABASE_URL: str | None = None
    DATABASE_ECHO: bool = False

    # JWT Settings
    JWT_SECRET: str = "your-super-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24

    # Collaborators
    GEOCODE_URL: str | None = None
    NOTIFICATIONS_URL: str | None = None
    NOTIFICATIONS_API_KEY: str | None = None

    # Search
    DIRECTORY_TIMEZONE: str = "UTC"
    SEARCH_CACHE_TTL_SECONDS: int = 300

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
