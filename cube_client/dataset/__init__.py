"""Dataset query API client."""

from cube_client.dataset.client import DatasetClient, column_name, dataset_guid
from cube_client.dataset.schemas import ExecuteQueriesResponse, PbiErrorSchema, QueryResultSchema, TableSchema

__all__ = [
    "DatasetClient",
    "column_name",
    "dataset_guid",
    "ExecuteQueriesResponse",
    "PbiErrorSchema",
    "QueryResultSchema",
    "TableSchema",
]
