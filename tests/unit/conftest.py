"""Shared fixtures - in-memory DB, sample functions and fake collaborators."""

import re
from contextlib import contextmanager

import duckdb
import pytest

from app.errors import FormulaParseError
from app.models.functions import DataType, FilterKind, FunctionDescriptor, ParameterDescriptor
from app.models.refresh import FormulaCell, ScopeKind
from app.repositories.common.cache import CacheRepository
from app.repositories.db import init_tables
from app.services.functions import FunctionRegistry
from app.services.keys import CacheKeyBuilder

AMT_NET = FunctionDescriptor(
    name="CC.AmtNet",
    measure="[AmtNet]",
    parameters=(
        ParameterDescriptor("account", 0, "Account", "AccountID"),
        ParameterDescriptor("start", 1, "Calendar", "Date", DataType.DATE, FilterKind.RANGE_START),
        ParameterDescriptor("end", 2, "Calendar", "Date", DataType.DATE, FilterKind.RANGE_END),
        ParameterDescriptor("entity", 3, "Entity", "EntityCode"),
    ),
    dataset_id="ds-finance",
)

QTY = FunctionDescriptor(
    name="CC.Qty",
    measure="Quantity",
    parameters=(
        ParameterDescriptor("sku", 0, "Product", "SKU"),
        ParameterDescriptor("year", 1, "Calendar", "Year", DataType.NUMBER),
    ),
    dataset_id="ds-finance",
)

HEADCOUNT = FunctionDescriptor(name="CC.Headcount", measure="[Headcount]", dataset_id="ds-hr")

# Cache keys as they appear in rendered queries
KEY_LITERAL_RE = re.compile(r'"(CC\.[^"]*)"')


class FakeSource:
    """Formula source over {sheet: {coordinate: (formula, display)}} plus reference values."""

    def __init__(self, sheets: dict, references: dict | None = None):
        self.sheets = sheets
        self.references = references or {}

    def list_formula_cells(self, scope):
        for sheet, cells in self.sheets.items():
            if scope.kind == ScopeKind.SHEET and sheet != scope.sheet:
                continue
            for coordinate, (formula, display) in cells.items():
                yield FormulaCell(handle=(sheet, coordinate), formula=formula, display=display)

    def resolve_reference(self, token, origin):
        if token not in self.references:
            raise FormulaParseError(f"Not a reference: {token}")
        return self.references[token]


class FakeExecutor:
    """Answers every key a query mentions with a value from `values` (default 1.0)."""

    def __init__(self, values: dict | None = None, fail_on: set[int] | None = None, omit: set[str] | None = None):
        self.values = values or {}
        self.fail_on = fail_on or set()
        self.omit = omit or set()
        self.calls: list[tuple[str, str | None]] = []
        self.keys_seen: list[list[str]] = []

    def execute(self, query, dataset_id=None):
        index = len(self.calls)
        self.calls.append((query, dataset_id))
        if index in self.fail_on:
            raise RuntimeError("Query timeout")
        keys = self._keys(query)
        self.keys_seen.append(keys)
        return [(k, self.values.get(k, 1.0)) for k in keys if k not in self.omit]

    @staticmethod
    def _keys(query):
        return KEY_LITERAL_RE.findall(query)


class FakeHost:
    """Records recalculations and suspension."""

    def __init__(self):
        self.recalculations = 0
        self.suspended = False
        self.suspensions = 0

    def recalculate(self):
        self.recalculations += 1

    @contextmanager
    def calculation_suspended(self):
        self.suspended = True
        self.suspensions += 1
        try:
            yield
        finally:
            self.suspended = False


@pytest.fixture
def conn():
    connection = duckdb.connect(":memory:")
    init_tables(connection)
    yield connection
    connection.close()


@pytest.fixture
def cache(conn):
    return CacheRepository(conn)


@pytest.fixture
def key_builder():
    return CacheKeyBuilder()


@pytest.fixture
def registry():
    return FunctionRegistry([AMT_NET, QTY, HEADCOUNT])
