"""Formula signatures stored beside cache entries."""

import re

from app.services.keys import CacheKeyBuilder

_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


def _argument(value: str) -> str:
    if _NUMBER_RE.match(value):
        return value
    return '"' + value.replace('"', '""') + '"'


def signature_from_key(key: str) -> str:
    """Rebuild a formula-like signature from a cache key: F|A|2024 -> =F("A",2024)."""
    name, values = CacheKeyBuilder.parse(key)
    if not values:
        return f"={name}()"
    return f"={name}({','.join(_argument(v) for v in values)})"
