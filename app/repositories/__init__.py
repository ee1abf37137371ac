"""Repositories package - data access layer for the cache database."""

from app.repositories.base import BaseRepository
from app.repositories.common import CacheRepository
from app.repositories.db import (
    close_db,
    connect,
    get_db,
    init_tables,
)

__all__ = [
    # DB
    "connect",
    "get_db",
    "close_db",
    "init_tables",
    # Base
    "BaseRepository",
    # Common
    "CacheRepository",
]
