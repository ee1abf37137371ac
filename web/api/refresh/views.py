"""Refresh API views - thin layer over the orchestrator."""

from app.container import Container
from app.models.refresh import RefreshReport, RefreshRequest, RefreshScope
from refresh import FormulaSource, Host
from web.api.errors import validate_scope

from .schemas import RefreshReportResponse


def _response(report: RefreshReport) -> RefreshReportResponse:
    return RefreshReportResponse(**report.to_dict(), ok=report.ok)


def _run(container: Container, source: FormulaSource, host: Host, scope: RefreshScope, force: bool):
    orchestrator = container.orchestrator(source, host)
    return _response(orchestrator.run(RefreshRequest(scope=scope, force=force)))


def refresh_workbook(
    container: Container, source: FormulaSource, host: Host, force: bool = False
) -> RefreshReportResponse:
    """Refresh every pending cell in the workbook."""
    return _run(container, source, host, validate_scope(), force)


def refresh_sheet(
    container: Container, source: FormulaSource, host: Host, sheet: str, force: bool = False
) -> RefreshReportResponse:
    """Refresh pending cells on one sheet."""
    return _run(container, source, host, validate_scope(sheet=sheet), force)


def refresh_range(
    container: Container,
    source: FormulaSource,
    host: Host,
    range_ref: str,
    sheet: str | None = None,
    force: bool = False,
) -> RefreshReportResponse:
    """Refresh pending cells in a range."""
    return _run(container, source, host, validate_scope(sheet=sheet, range_ref=range_ref), force)


def clear_cache_and_refresh(
    container: Container,
    source: FormulaSource,
    host: Host,
    sheet: str | None = None,
    range_ref: str | None = None,
) -> RefreshReportResponse:
    """Wipe the cache and force-refresh the workbook, one sheet or one range."""
    scope = validate_scope(sheet=sheet, range_ref=range_ref)
    orchestrator = container.orchestrator(source, host)
    return _response(orchestrator.clear_and_refresh(RefreshRequest(scope=scope)))
