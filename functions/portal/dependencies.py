"""
Dependency wiring for the FastAPI app.

The storage backend is built once per application from ``Settings`` and kept
on ``app.state``; handlers receive it through ``get_storage``.
"""

from __future__ import annotations

import logging

from fastapi import Request

from portal.config import Settings, StorageBackend
from portal.db import SqlStorage
from portal.errors import ConfigurationError
from portal.kv import RedisStorage
from portal.storage import InMemoryStorage, Storage

logger = logging.getLogger(__name__)


def build_storage(settings: Settings) -> Storage:
    """
    Return the storage backend selected by configuration.

    ``StorageBackend.AUTO`` resolves to sql, then redis, then memory depending
    on which connection URLs are configured. An explicit choice without its
    URL is a configuration error.
    """
    backend = settings.resolved_backend()
    logger.info("Using %s storage backend", backend.value)
    if backend is StorageBackend.SQL:
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL must be set for the sql backend")
        return SqlStorage(settings.database_url)
    if backend is StorageBackend.REDIS:
        if not settings.redis_url:
            raise ConfigurationError("REDIS_URL must be set for the redis backend")
        return RedisStorage(url=settings.redis_url, key_prefix=settings.redis_key_prefix)
    return InMemoryStorage()


def get_storage(request: Request) -> Storage:
    return request.app.state.storage
