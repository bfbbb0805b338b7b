from pydantic_settings import BaseSettings, SettingsConfigDict

from models.link import ObjectType


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
class Settings(BaseSettings):
    """
    Application settings managed by Pydantic.
    Reads from environment variables and/or .env file.
    """
    ENVIRONMENT: str = "production"

    ALLOWED_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./entities.db"
    DATABASE_ECHO: bool = False

    # Link headers
    LINK_HEADER_OBJECT_TYPES: list[ObjectType] = [ObjectType.NODE, ObjectType.MEDIA]
    DYNAMIC_CACHE_HEADER: str = "X-Dynamic-Cache"
    PUBLIC_BASE_URL: str | None = None  # e.g. https://example.org

    # Access
    ANONYMOUS_PERMISSIONS: list[str] = [
        "access content",
        "view media",
        "access user profiles",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # Config to read from .env file if available
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
        )

settings = Settings() # type: ignore
