"""Refresh orchestration - collect, pool, build, execute, store, recalculate."""

from loguru import logger

from app.errors import BatchExecutionError
from app.models.refresh import (
    QueryBatch,
    RefreshReport,
    RefreshRequest,
    RefreshState,
)
from app.repositories.common.cache import CacheRepository
from app.services.keys import normalize_key
from app.services.pooling import PoolAnalyzer
from app.services.queries import DaxQueryBuilder
from refresh.batches import build_batches
from refresh.collector import PendingEvaluationCollector
from refresh.protocols import Host, QueryExecutor
from refresh.signatures import signature_from_key

KEY_HEADER = "CacheKey"


def _storable(key: str) -> bool:
    """Result rows that are data, not headers or column references."""
    return bool(key) and not key.startswith("[") and key != KEY_HEADER


class RefreshOrchestrator:
    """Runs one refresh cycle per request."""

    def __init__(
        self,
        collector: PendingEvaluationCollector,
        analyzer: PoolAnalyzer,
        query_builder: DaxQueryBuilder,
        cache: CacheRepository,
        executor: QueryExecutor,
        host: Host,
    ):
        self._collector = collector
        self._analyzer = analyzer
        self._builder = query_builder
        self._cache = cache
        self._executor = executor
        self._host = host
        self._state = RefreshState.IDLE

    @property
    def state(self) -> RefreshState:
        return self._state

    def _transition(self, state: RefreshState) -> None:
        logger.debug("Refresh state: {} -> {}", self._state, state)
        self._state = state

    def run(self, request: RefreshRequest) -> RefreshReport:
        """Refresh every pending cell in the request's scope."""
        report = RefreshReport(scope=request.scope.describe())
        logger.info("Refreshing {}{}", report.scope, " [FORCE]" if request.force else "")

        with self._host.calculation_suspended():
            try:
                self._transition(RefreshState.COLLECTING)
                items, report.skipped = self._collector.collect(request.scope, request.force)
                report.collected = len(items)
                if not items:
                    logger.info("No cells need refresh {}", report.scope)
                    return report

                self._transition(RefreshState.ANALYZING)
                analysis = self._analyzer.analyze(items)
                report.pools = len(analysis.pools)
                report.pooled = analysis.pooled_count
                report.orphans = len(analysis.orphans)

                self._transition(RefreshState.BUILDING)
                batches, unrenderable = build_batches(self._builder, analysis)
                report.skipped += unrenderable
                report.batches = len(batches)

                signatures = {item.cache_key: item.signature for item in items}
                for index, batch in enumerate(batches):
                    self._run_batch(index, batch, signatures, report)

                self._transition(RefreshState.RECALCULATING)
                self._host.recalculate()
            finally:
                self._transition(RefreshState.IDLE)

        logger.info(
            "Refresh done: {} cells, {} batches ({} failed), {} stored",
            report.collected,
            report.batches,
            len(report.failed_batches),
            report.stored,
        )
        return report

    def clear_and_refresh(self, request: RefreshRequest) -> RefreshReport:
        """Wipe the cache, then force-refresh the request's scope."""
        self._cache.clear()
        return self.run(RefreshRequest(scope=request.scope, force=True))

    # ========== Executing ==========

    def _run_batch(
        self,
        index: int,
        batch: QueryBatch,
        signatures: dict[str, str],
        report: RefreshReport,
    ) -> None:
        self._transition(RefreshState.EXECUTING)
        try:
            rows = list(self._executor.execute(batch.text, batch.dataset_id))
        except Exception as e:
            error = BatchExecutionError(index, e)
            logger.warning("{} ({} keys)", error.message, len(batch.keys))
            report.failed_batches.append({"batch": index, "error": str(e), "keys": len(batch.keys)})
            return

        self._transition(RefreshState.STORING)
        entries = []
        returned: set[str] = set()
        for raw_key, value in rows:
            key = normalize_key(str(raw_key) if raw_key is not None else "")
            if not _storable(key):
                continue
            returned.add(key)
            entries.append((key, value, signatures.get(key) or signature_from_key(key)))

        # Set fragments return no row for members missing from the model
        for key in batch.keys:
            if key not in returned:
                entries.append((key, None, signatures.get(key) or signature_from_key(key)))

        report.stored += self._cache.upsert_batch(entries)
        logger.debug("Batch {}: {} rows, {} stored", index, len(rows), len(entries))
