"""Cache key building."""

from app.services.keys.builder import (
    DELIMITER,
    LIST_SEPARATOR,
    CacheKeyBuilder,
    normalize_key,
    split_key,
    stringify,
)

__all__ = [
    "DELIMITER",
    "LIST_SEPARATOR",
    "CacheKeyBuilder",
    "normalize_key",
    "split_key",
    "stringify",
]
