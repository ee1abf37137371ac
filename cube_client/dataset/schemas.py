"""executeQueries response schemas."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetailSchema(BaseModel):
    """One error detail entry."""

    code: str | None = None
    detail: dict[str, Any] | None = None


class PbiErrorSchema(BaseModel):
    """Service error body."""

    code: str | None = None
    message: str | None = None
    pbi_error: dict[str, Any] | None = Field(alias="pbi.error", default=None)

    class Config:
        populate_by_name = True

    def describe(self) -> str:
        """Most specific message available."""
        details = (self.pbi_error or {}).get("details") or []
        for item in details:
            value = ErrorDetailSchema.model_validate(item).detail or {}
            if value.get("value"):
                return str(value["value"])
        return self.message or self.code or "Unknown error"


class TableSchema(BaseModel):
    """Result table."""

    rows: list[dict[str, Any]] = []
    error: PbiErrorSchema | None = None


class QueryResultSchema(BaseModel):
    """Result for one query."""

    tables: list[TableSchema] = []
    error: PbiErrorSchema | None = None


class ExecuteQueriesResponse(BaseModel):
    """Whole executeQueries response."""

    results: list[QueryResultSchema] = []
    error: PbiErrorSchema | None = None


class ErrorResponse(BaseModel):
    """HTTP error response body."""

    error: PbiErrorSchema | None = None
