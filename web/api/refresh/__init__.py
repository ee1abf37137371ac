"""Refresh API."""

from web.api.refresh.views import (
    clear_cache_and_refresh,
    refresh_range,
    refresh_sheet,
    refresh_workbook,
)

__all__ = [
    "refresh_workbook",
    "refresh_sheet",
    "refresh_range",
    "clear_cache_and_refresh",
]
