"""Dependency Injection container - one per session, built explicitly."""

import duckdb

from app.repositories.common.cache import CacheRepository
from app.repositories.db import connect
from app.services.functions import FunctionEvaluator, FunctionRegistry, load_registry
from app.services.keys import CacheKeyBuilder
from app.services.pooling import PoolAnalyzer
from app.services.queries import DaxQueryBuilder
from cube_client import DatasetClient
from refresh import FormulaSource, Host, PendingEvaluationCollector, QueryExecutor, RefreshOrchestrator
from settings import DB_PATH, FUNCTIONS_CONFIG, MAX_QUERY_LENGTH, MIN_POOL_SIZE, YEAR_RANGE


class Container:
    """Session DI container - owns the DB connection and the query client."""

    def __init__(
        self,
        registry: FunctionRegistry | None = None,
        conn: duckdb.DuckDBPyConnection | None = None,
        executor: QueryExecutor | None = None,
        db_path: str = DB_PATH,
        functions_config: str = FUNCTIONS_CONFIG,
        max_query_length: int = MAX_QUERY_LENGTH,
        min_pool_size: int = MIN_POOL_SIZE,
    ):
        self.registry = registry if registry is not None else load_registry(functions_config)
        self._owns_conn = conn is None
        self.conn = conn if conn is not None else connect(db_path)
        self._executor = executor

        # Repositories
        self.cache = CacheRepository(self.conn)

        # Services
        self.key_builder = CacheKeyBuilder(YEAR_RANGE)
        self.pool_analyzer = PoolAnalyzer(min_pool_size)
        self.query_builder = DaxQueryBuilder(self.key_builder, max_query_length)
        self.evaluator = FunctionEvaluator(self.registry, self.key_builder, self.cache)

    @property
    def executor(self) -> QueryExecutor:
        """Query executor; the HTTP client is created on first use."""
        if self._executor is None:
            self._executor = DatasetClient()
        return self._executor

    def collector(self, source: FormulaSource) -> PendingEvaluationCollector:
        """Pending evaluation collector over one formula source."""
        return PendingEvaluationCollector(source, self.registry, self.key_builder, self.cache)

    def orchestrator(self, source: FormulaSource, host: Host) -> RefreshOrchestrator:
        """Refresh orchestrator over one formula source."""
        return RefreshOrchestrator(
            collector=self.collector(source),
            analyzer=self.pool_analyzer,
            query_builder=self.query_builder,
            cache=self.cache,
            executor=self.executor,
            host=host,
        )

    def close(self) -> None:
        """Release the HTTP client and the DB connection this container opened."""
        if isinstance(self._executor, DatasetClient):
            self._executor.close()
        if self._owns_conn:
            self.conn.close()
