"""Cache key builder - one canonical key per logical function call.

The key is ``FUNCTION|v0|v1|...|vK`` where ``vK`` is the last non-empty
canonical value. Both the live lookup path (host values) and the refresh path
(strings parsed out of stored formulas) go through :func:`stringify` and
:meth:`CacheKeyBuilder.build`, so the same logical call always yields the same
bytes.
"""

import re
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Any

from app.errors import KeyBuildError
from app.models.functions import DataType, FilterKind, ParameterDescriptor
from settings import YEAR_RANGE

DELIMITER = "|"
ESCAPE = "\\"
LIST_SEPARATOR = ","

# Excel 1900 date system (serial 1 = 1900-01-01, with the 1900 leap bug)
EXCEL_EPOCH = date(1899, 12, 30)

_INTEGER_RE = re.compile(r"^\d+$")
_SERIAL_RE = re.compile(r"^\d+(\.\d+)?$")
_ISO_DATE_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[T ][\d:.]*Z?)?$")


def stringify(value: Any) -> str:
    """Turn a host value (number, date, range, text, None) into a raw string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(value)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        parts = [stringify(v) for v in _flatten(value)]
        return LIST_SEPARATOR.join(p for p in parts if p.strip())
    return str(value)


def _flatten(values: Sequence) -> list:
    flat = []
    for v in values:
        if isinstance(v, (list, tuple)):
            flat.extend(_flatten(v))
        else:
            flat.append(v)
    return flat


def escape_value(value: str) -> str:
    return value.replace(ESCAPE, ESCAPE * 2).replace(DELIMITER, ESCAPE + DELIMITER)


def split_key(key: str) -> list[str]:
    """Split on unescaped delimiters and unescape each part."""
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for ch in key:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == ESCAPE:
            escaped = True
        elif ch == DELIMITER:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if escaped:
        current.append(ESCAPE)
    parts.append("".join(current))
    return parts


def normalize_key(key: str | None) -> str:
    """Strip whitespace and trailing unescaped delimiters."""
    key = (key or "").strip()
    while key.endswith(DELIMITER):
        backslashes = len(key[:-1]) - len(key[:-1].rstrip(ESCAPE))
        if backslashes % 2:
            break
        key = key[:-1]
    return key


class CacheKeyBuilder:
    """Canonicalizes parameter values and builds cache keys."""

    def __init__(self, year_range: tuple[int, int] = YEAR_RANGE):
        self._year_min, self._year_max = year_range

    # ========== Values ==========

    def is_year(self, value: str) -> bool:
        """Bare integer inside the configured calendar-year range."""
        value = value.strip()
        return bool(_INTEGER_RE.match(value)) and self._year_min <= int(value) <= self._year_max

    def to_date(self, value: str, descriptor: ParameterDescriptor | None = None) -> date | None:
        """Parse a year, date serial or ISO-like date. None when unparsable."""
        value = value.strip()
        if not value:
            return None

        if self.is_year(value):
            year = int(value)
            if descriptor is not None and descriptor.filter_kind == FilterKind.RANGE_END:
                return date(year, 12, 31)
            return date(year, 1, 1)

        if _SERIAL_RE.match(value):
            days = int(value.split(".")[0])
            if days < 1:
                return None
            try:
                return EXCEL_EPOCH + timedelta(days=days)
            except OverflowError:
                return None

        match = _ISO_DATE_RE.match(value)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                return None
        return None

    def canonicalize(self, raw: Any, descriptor: ParameterDescriptor | None = None) -> str:
        """Canonical string for one parameter value. Idempotent."""
        value = raw if isinstance(raw, str) else stringify(raw)
        value = value.strip()
        if not value:
            return ""

        if LIST_SEPARATOR in value:
            parts = (self._canonical_scalar(v.strip(), descriptor) for v in value.split(LIST_SEPARATOR))
            return LIST_SEPARATOR.join(p for p in parts if p)

        return self._canonical_scalar(value, descriptor)

    def _canonical_scalar(self, value: str, descriptor: ParameterDescriptor | None) -> str:
        if not value or descriptor is None:
            return value

        if descriptor.data_type == DataType.TEXT:
            return value.upper()

        if descriptor.data_type == DataType.DATE:
            parsed = self.to_date(value, descriptor)
            # Unparsable dates keep the literal text
            return parsed.isoformat() if parsed else value

        return value

    def canonicalize_all(
        self,
        raw_values: Sequence[Any],
        descriptors: Sequence[ParameterDescriptor],
    ) -> list[str]:
        """Canonical values, padded with "" up to the parameter count."""
        size = max(len(raw_values), len(descriptors))
        values = list(raw_values) + [""] * (size - len(raw_values))
        return [
            self.canonicalize(v, descriptors[i] if i < len(descriptors) else None)
            for i, v in enumerate(values)
        ]

    # ========== Keys ==========

    def build(
        self,
        function_name: str,
        descriptors: Sequence[ParameterDescriptor],
        raw_values: Sequence[Any],
    ) -> str:
        """Build the cache key for a call."""
        return self.build_canonical(function_name, self.canonicalize_all(raw_values, descriptors))

    @staticmethod
    def build_canonical(function_name: str, canonical_values: Sequence[str]) -> str:
        """Join already-canonical values, dropping trailing empties. Blank names raise KeyBuildError."""
        last = -1
        for i in range(len(canonical_values) - 1, -1, -1):
            if canonical_values[i]:
                last = i
                break

        name = function_name.strip().upper()
        if not name:
            raise KeyBuildError("Cache key without a function name")

        parts = [name]
        parts.extend(escape_value(v) for v in canonical_values[: last + 1])
        return DELIMITER.join(parts)

    @staticmethod
    def parse(key: str) -> tuple[str, list[str]]:
        """Split a key into function name and parameter values."""
        parts = split_key(key)
        return parts[0], parts[1:]
