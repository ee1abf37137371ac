"""Collaborator protocols for the refresh cycle."""

from collections.abc import Iterable
from contextlib import AbstractContextManager
from typing import Any, Protocol, runtime_checkable

from app.models.refresh import FormulaCell, RefreshScope


@runtime_checkable
class FormulaSource(Protocol):
    """Lists formula cells and resolves references inside their formulas."""

    def list_formula_cells(self, scope: RefreshScope) -> Iterable[FormulaCell]:
        ...

    def resolve_reference(self, token: str, origin: Any) -> Any:
        """Value of a reference as seen from `origin`; a range gives a list.

        Raises FormulaParseError when the token is not a reference.
        """
        ...


@runtime_checkable
class QueryExecutor(Protocol):
    """Runs one query and returns (CacheKey, Result) rows."""

    def execute(self, query: str, dataset_id: str | None = None) -> Iterable[tuple[str, Any]]:
        ...


@runtime_checkable
class Host(Protocol):
    """Spreadsheet host recalculation."""

    def recalculate(self) -> None:
        ...

    def calculation_suspended(self) -> AbstractContextManager:
        """Context manager that turns automatic calculation off and restores it."""
        ...
