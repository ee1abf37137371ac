"""Workbook integration - formula source over .xlsx files and host helpers."""

from workbook.retry import wait_until_ready
from workbook.source import OfflineHost, OpenpyxlFormulaSource, split_sheet

__all__ = ["OfflineHost", "OpenpyxlFormulaSource", "split_sheet", "wait_until_ready"]
