"""Cache table and markers."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from app.models.common.base import BaseEntity

CACHE_DDL = """
CREATE TABLE IF NOT EXISTS cube_cache (
    CacheKey VARCHAR PRIMARY KEY,
    Result JSON,
    Timestamp TIMESTAMP NOT NULL,
    Signature VARCHAR
)
"""


class Marker(Enum):
    """Lookup results that are not values.

    A plain Enum (not StrEnum) so a text result such as "#REFRESH" coming back
    from the data source never compares equal to a marker.
    """

    REFRESH = "#REFRESH"
    NULL = "#NULL"

    @property
    def display(self) -> str:
        return self.value


@dataclass
class CacheEntry(BaseEntity):
    """One stored cache row."""

    key: str
    value: Any
    last_updated: datetime
    signature: str
