"""Refresh cycle models."""

from app.models.refresh.entities import (
    FormulaCell,
    PendingEvaluation,
    Pool,
    PoolAnalysis,
    QueryBatch,
    QueryFragment,
    RefreshReport,
    RefreshRequest,
    RefreshScope,
    RefreshState,
    ScopeKind,
)

__all__ = [
    "FormulaCell",
    "PendingEvaluation",
    "Pool",
    "PoolAnalysis",
    "QueryBatch",
    "QueryFragment",
    "RefreshReport",
    "RefreshRequest",
    "RefreshScope",
    "RefreshState",
    "ScopeKind",
]
