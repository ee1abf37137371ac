"""Base entity class for all domain entities."""

from dataclasses import dataclass, fields
from datetime import date
from enum import Enum
from typing import Any


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, BaseEntity):
        return value.to_dict()
    return value


@dataclass
class BaseEntity:
    """Base class for all entities."""

    def to_dict(self) -> dict[str, Any]:
        """Field values as plain data (enums and dates as strings)."""
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}
