"""Refresh cycle entities - created and discarded within one refresh."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from app.models.common import BaseEntity
from app.models.functions import FunctionDescriptor


class ScopeKind(StrEnum):
    """What part of the workbook a refresh covers."""

    WORKBOOK = "workbook"
    SHEET = "sheet"
    RANGE = "range"


class RefreshState(StrEnum):
    """Refresh orchestrator states."""

    IDLE = "idle"
    COLLECTING = "collecting"
    ANALYZING = "analyzing"
    BUILDING = "building"
    EXECUTING = "executing"
    STORING = "storing"
    RECALCULATING = "recalculating"


@dataclass(frozen=True)
class RefreshScope:
    """Workbook, one sheet or one range (e.g. "Sheet1!A1:D20")."""

    kind: ScopeKind = ScopeKind.WORKBOOK
    sheet: str | None = None
    range_ref: str | None = None

    @classmethod
    def workbook(cls) -> "RefreshScope":
        return cls()

    @classmethod
    def for_sheet(cls, sheet: str) -> "RefreshScope":
        return cls(kind=ScopeKind.SHEET, sheet=sheet)

    @classmethod
    def for_range(cls, range_ref: str, sheet: str | None = None) -> "RefreshScope":
        return cls(kind=ScopeKind.RANGE, sheet=sheet, range_ref=range_ref)

    def describe(self) -> str:
        if self.kind == ScopeKind.RANGE:
            return f"in range {self.range_ref}"
        if self.kind == ScopeKind.SHEET:
            return f"on sheet '{self.sheet}'"
        return "in workbook"


@dataclass(frozen=True)
class RefreshRequest:
    """One refresh request, threaded through the whole cycle."""

    scope: RefreshScope = field(default_factory=RefreshScope)
    force: bool = False


@dataclass(frozen=True)
class FormulaCell:
    """A formula cell as listed by the formula source.

    `display` is the value the host currently shows; None when unknown.
    """

    handle: Any
    formula: str
    display: Any = None


@dataclass
class PendingEvaluation(BaseEntity):
    """A formula cell whose result must be fetched."""

    cache_key: str
    function: FunctionDescriptor
    raw_values: tuple[str, ...]
    canonical_values: tuple[str, ...]
    signature: str
    cell: Any = None

    @property
    def function_name(self) -> str:
        return self.function.name


@dataclass
class Pool(BaseEntity):
    """Pending evaluations that differ only at `varying_index`."""

    function: FunctionDescriptor
    varying_index: int
    fixed_values: dict[int, str]
    varying_values: list[str]
    members: list[PendingEvaluation]

    def values_for(self, varying_value: str) -> list[str]:
        """Full canonical value list for one varying value."""
        values = [self.fixed_values.get(i, "") for i in range(self.function.arity)]
        values[self.varying_index] = varying_value
        return values


@dataclass
class PoolAnalysis(BaseEntity):
    """Result of pool analysis."""

    pools: list[Pool] = field(default_factory=list)
    orphans: list[PendingEvaluation] = field(default_factory=list)

    @property
    def pooled_count(self) -> int:
        return sum(len(p.members) for p in self.pools)


@dataclass(frozen=True)
class QueryFragment:
    """Rendered query text producing rows of (CacheKey, Result)."""

    text: str
    keys: tuple[str, ...]
    dataset_id: str | None = None

    def __len__(self) -> int:
        return len(self.text)


@dataclass
class QueryBatch(BaseEntity):
    """Fragments combined into one query under the length ceiling."""

    fragments: list[QueryFragment]
    text: str
    dataset_id: str | None = None

    @property
    def keys(self) -> list[str]:
        return [k for f in self.fragments for k in f.keys]


@dataclass
class RefreshReport(BaseEntity):
    """Outcome of one refresh cycle."""

    scope: str
    collected: int = 0
    pools: int = 0
    pooled: int = 0
    orphans: int = 0
    skipped: int = 0
    batches: int = 0
    failed_batches: list[dict] = field(default_factory=list)
    stored: int = 0

    @property
    def ok(self) -> bool:
        return not self.failed_batches
