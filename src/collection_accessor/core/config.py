from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="", case_sensitive=True, extra="ignore"
    )

    # Application
    APP_NAME: str = "CollectionAccessor"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # MongoDB
    MONGODB_URL: str = Field(
        "mongodb://localhost:27017", description="MongoDB connection URL"
    )
    MONGODB_DB_NAME: str = "collection_accessor"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = Field(5000, ge=0)

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


# Global settings instance
settings = Settings()
