"""Common models - base classes and the cache table."""

from app.models.common.base import BaseEntity
from app.models.common.cache import CACHE_DDL, CacheEntry, Marker

__all__ = [
    "BaseEntity",
    "CACHE_DDL",
    "CacheEntry",
    "Marker",
]
