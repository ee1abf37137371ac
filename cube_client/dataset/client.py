"""Dataset query client."""

import re
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from cube_client.base import BaseClient, QueryExecutionError
from cube_client.dataset.schemas import ErrorResponse, ExecuteQueriesResponse

KEY_COLUMN = "CacheKey"
RESULT_COLUMN = "Result"

_GUID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")


def column_name(name: str) -> str:
    """Bare column name: '[CacheKey]' and 'Table[CacheKey]' become 'CacheKey'."""
    name = name.strip()
    if name.endswith("]") and "[" in name:
        return name[name.rindex("[") + 1 : -1]
    return name


def dataset_guid(dataset_id: str) -> str:
    """Dataset GUID out of a possibly prefixed id."""
    matches = _GUID_RE.findall(dataset_id)
    return matches[-1] if matches else dataset_id


def _error_message(resp: httpx.Response) -> str:
    try:
        body = ErrorResponse.model_validate(resp.json())
    except (ValueError, ValidationError):
        return f"HTTP {resp.status_code}"
    if body.error is None:
        return f"HTTP {resp.status_code}"
    return body.error.describe()


class DatasetClient(BaseClient):
    """Client for POST /datasets/{id}/executeQueries."""

    def __init__(self, *args, default_dataset_id: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._default_dataset_id = default_dataset_id

    def execute(self, query: str, dataset_id: str | None = None) -> list[tuple[str, Any]]:
        """Run one DAX query and return its (CacheKey, Result) rows."""
        dataset_id = dataset_id or self._default_dataset_id
        if not dataset_id:
            raise QueryExecutionError("No dataset id for query")

        payload = {
            "queries": [{"query": query}],
            "serializerSettings": {"includeNulls": True},
        }
        try:
            data = self._post(f"datasets/{dataset_guid(dataset_id)}/executeQueries", payload)
        except httpx.HTTPStatusError as e:
            raise QueryExecutionError(_error_message(e.response), e.response.status_code) from e
        except httpx.HTTPError as e:
            raise QueryExecutionError(f"Request failed: {e}") from e

        try:
            response = ExecuteQueriesResponse.model_validate(data)
        except ValidationError as e:
            raise QueryExecutionError(f"Unexpected response: {e}") from e

        return self._rows(response)

    @staticmethod
    def _rows(response: ExecuteQueriesResponse) -> list[tuple[str, Any]]:
        if response.error:
            raise QueryExecutionError(response.error.describe())

        rows: list[tuple[str, Any]] = []
        for result in response.results:
            if result.error:
                raise QueryExecutionError(result.error.describe())
            for table in result.tables:
                if table.error:
                    raise QueryExecutionError(table.error.describe())
                for row in table.rows:
                    values = {column_name(k): v for k, v in row.items()}
                    if KEY_COLUMN not in values:
                        continue
                    rows.append((values[KEY_COLUMN], values.get(RESULT_COLUMN)))

        logger.debug("Query returned {} rows", len(rows))
        return rows
