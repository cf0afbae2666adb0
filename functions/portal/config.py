"""
Configuration and settings for the portal backend.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Dict, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackend(str, Enum):
    AUTO = "auto"
    MEMORY = "memory"
    REDIS = "redis"
    SQL = "sql"


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Storage selection; AUTO picks sql > redis > memory by configured bindings.
    storage_backend: StorageBackend = Field(
        default=StorageBackend.AUTO, validation_alias="PORTAL_STORAGE_BACKEND"
    )

    # Relational store (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Key-value store (Redis)
    redis_url: Optional[str] = Field(default=None, validation_alias="REDIS_URL")
    redis_key_prefix: str = Field(default="portal", validation_alias="REDIS_KEY_PREFIX")

    # Sites
    default_site_id: str = Field(
        default="sitio_test_001", validation_alias="PORTAL_DEFAULT_SITE_ID"
    )
    site_hosts: Dict[str, str] = Field(
        default_factory=dict, validation_alias="PORTAL_SITE_HOSTS"
    )

    def resolved_backend(self) -> StorageBackend:
        """Return the concrete backend, resolving AUTO by configured bindings."""
        if self.storage_backend is not StorageBackend.AUTO:
            return self.storage_backend
        if self.database_url:
            return StorageBackend.SQL
        if self.redis_url:
            return StorageBackend.REDIS
        return StorageBackend.MEMORY


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
