"""Cube query API client package."""

from cube_client.base import BaseClient, QueryExecutionError
from cube_client.dataset import DatasetClient

__all__ = [
    # Base
    "BaseClient",
    "QueryExecutionError",
    # Clients
    "DatasetClient",
]
