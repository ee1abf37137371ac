"""Refresh package - consolidated refresh of pending formula cells."""

from refresh.collector import PendingEvaluationCollector, needs_refresh
from refresh.orchestrator import RefreshOrchestrator
from refresh.protocols import FormulaSource, Host, QueryExecutor

__all__ = [
    "FormulaSource",
    "Host",
    "PendingEvaluationCollector",
    "QueryExecutor",
    "RefreshOrchestrator",
    "needs_refresh",
]
