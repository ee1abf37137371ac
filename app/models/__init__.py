"""Models package - DDL and entities for all domains."""

from app.models.common import CACHE_DDL, BaseEntity, CacheEntry, Marker
from app.models.functions import (
    DataType,
    FilterKind,
    FunctionDescriptor,
    ParameterDescriptor,
)
from app.models.refresh import (
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

ALL_DDL = [
    # Common
    CACHE_DDL,
]

__all__ = [
    # Common
    "BaseEntity",
    "CACHE_DDL",
    "CacheEntry",
    "Marker",
    # Functions
    "DataType",
    "FilterKind",
    "FunctionDescriptor",
    "ParameterDescriptor",
    # Refresh
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
    # All DDL
    "ALL_DDL",
]
