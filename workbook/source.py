"""Formula source over an .xlsx file (openpyxl)."""

from collections.abc import Iterator
from contextlib import AbstractContextManager, nullcontext
from pathlib import Path
from typing import Any

import openpyxl
from loguru import logger
from openpyxl.utils.cell import range_boundaries
from openpyxl.worksheet.worksheet import Worksheet

from app.errors import FormulaParseError
from app.models.refresh import FormulaCell, RefreshScope, ScopeKind
from workbook.retry import wait_until_ready


def split_sheet(ref: str) -> tuple[str | None, str]:
    """'My Sheet'!A1:B2 -> ("My Sheet", "A1:B2")."""
    if "!" not in ref:
        return None, ref
    sheet, cells = ref.rsplit("!", 1)
    if len(sheet) >= 2 and sheet.startswith("'") and sheet.endswith("'"):
        sheet = sheet[1:-1].replace("''", "'")
    return sheet, cells


class OpenpyxlFormulaSource:
    """Formula cells of a workbook file.

    Formula text comes from the workbook as stored; displayed values and
    referenced inputs come from the values Excel cached at the last save.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._formulas = openpyxl.load_workbook(self._path)
        self._values = openpyxl.load_workbook(self._path, data_only=True)
        logger.info("Workbook loaded: {} ({} sheets)", self._path.name, len(self._formulas.sheetnames))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def sheet_names(self) -> list[str]:
        return list(self._formulas.sheetnames)

    def _sheet(self, name: str) -> Worksheet:
        if name not in self._formulas.sheetnames:
            raise ValueError(f"Unknown sheet: {name}")
        return self._formulas[name]

    def _cells(self, scope: RefreshScope) -> Iterator[Any]:
        if scope.kind == ScopeKind.RANGE:
            sheet, ref = split_sheet(scope.range_ref or "")
            sheet = sheet or scope.sheet
            if not sheet:
                raise ValueError(f"Range without a sheet: {scope.range_ref}")
            selected = self._sheet(sheet)[ref.replace("$", "")]
            if not isinstance(selected, tuple):
                yield selected
                return
            for row in selected:
                yield from row if isinstance(row, tuple) else (row,)
            return

        if scope.kind == ScopeKind.SHEET:
            sheets = [self._sheet(scope.sheet or "")]
        else:
            sheets = [ws for ws in self._formulas.worksheets if ws.sheet_state == "visible"]

        for ws in sheets:
            for row in ws.iter_rows():
                yield from row

    def list_formula_cells(self, scope: RefreshScope) -> Iterator[FormulaCell]:
        """Formula cells in scope with their cached display values."""
        for cell in self._cells(scope):
            if not isinstance(cell.value, str) or not cell.value.startswith("="):
                continue
            sheet = cell.parent.title
            display = self._values[sheet][cell.coordinate].value
            yield FormulaCell(handle=(sheet, cell.coordinate), formula=cell.value, display=display)

    def resolve_reference(self, token: str, origin: Any) -> Any:
        """Cached value of a cell, a range (flat list) or a defined name."""
        origin_sheet = origin[0] if origin else self._formulas.sheetnames[0]

        defined = self._values.defined_names.get(token)
        if defined is not None:
            values: list[Any] = []
            for sheet, ref in defined.destinations:
                values.extend(self._range_values(sheet, ref))
            return values[0] if len(values) == 1 else values

        sheet, ref = split_sheet(token)
        ref = ref.replace("$", "")
        try:
            min_col, min_row, _, _ = range_boundaries(ref)
        except (TypeError, ValueError) as e:
            raise FormulaParseError(f"Not a reference: {token}") from e
        if ":" not in ref and (min_col is None or min_row is None):
            raise FormulaParseError(f"Not a reference: {token}")

        sheet = sheet or origin_sheet
        if sheet not in self._values.sheetnames:
            raise FormulaParseError(f"Unknown sheet in reference: {token}")

        if ":" not in ref:
            return self._values[sheet][ref].value
        return self._range_values(sheet, ref)

    def _range_values(self, sheet: str, ref: str) -> list[Any]:
        selected = self._values[sheet][ref.replace("$", "")]
        if not isinstance(selected, tuple):
            return [selected.value]
        values = []
        for row in selected:
            for cell in row if isinstance(row, tuple) else (row,):
                if cell.value is not None:
                    values.append(cell.value)
        return values

    def request_full_calculation(self) -> None:
        """Flag the file so Excel recalculates everything on next open, and save it."""
        self._formulas.calculation.fullCalcOnLoad = True
        self._formulas.save(self._path)
        logger.info("Workbook flagged for full recalculation: {}", self._path.name)


class OfflineHost:
    """Host for a workbook file that is not open in Excel."""

    def __init__(self, source: OpenpyxlFormulaSource, save: bool = False, attempts: int = 5, delay: float = 1.0):
        self._source = source
        self._save = save
        self._attempts = attempts
        self._delay = delay

    def calculation_suspended(self) -> AbstractContextManager:
        return nullcontext()

    def _try_save(self) -> bool:
        self._source.request_full_calculation()
        return True

    def recalculate(self) -> None:
        if not self._save:
            logger.info("Cache updated; values appear when {} is recalculated", self._source.path.name)
            return

        # The file stays locked while another process (Excel) has it open
        if not wait_until_ready(self._try_save, attempts=self._attempts, delay=self._delay):
            logger.warning("Could not save {}; cache is updated, recalculate it in Excel", self._source.path.name)
