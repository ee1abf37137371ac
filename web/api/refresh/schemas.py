"""Refresh API response schemas."""

from pydantic import BaseModel


class FailedBatchItem(BaseModel):
    """A batch the data source rejected."""

    batch: int
    error: str
    keys: int


class RefreshReportResponse(BaseModel):
    """Refresh outcome."""

    scope: str
    collected: int
    pools: int
    pooled: int
    orphans: int
    skipped: int
    batches: int
    stored: int
    failed_batches: list[FailedBatchItem]
    ok: bool
