"""Batch building - pool fragments first, then orphans per function."""

from loguru import logger

from app.errors import FragmentRenderError
from app.models.refresh import PendingEvaluation, PoolAnalysis, QueryBatch, QueryFragment
from app.services.queries import DaxQueryBuilder


def build_batches(builder: DaxQueryBuilder, analysis: PoolAnalysis) -> tuple[list[QueryBatch], int]:
    """Query batches for an analysis and the number of items that could not be rendered."""
    skipped = 0
    pool_fragments: list[QueryFragment] = []
    leftovers: list[PendingEvaluation] = []
    for pool in analysis.pools:
        try:
            pool_fragments.extend(builder.render_pool(pool))
        except FragmentRenderError as e:
            logger.warning("Pool {} not renderable ({}), querying members one by one", pool.function.name, e.message)
            leftovers.extend(pool.members)

    batches = builder.pack(pool_fragments)

    by_function: dict[str, dict[str, PendingEvaluation]] = {}
    for item in [*analysis.orphans, *leftovers]:
        by_function.setdefault(item.function_name, {}).setdefault(item.cache_key, item)

    for name in sorted(by_function):
        fragments = []
        for item in by_function[name].values():
            try:
                fragments.append(builder.render_orphan(item))
            except FragmentRenderError as e:
                logger.warning("Skipping {}: {}", item.cache_key, e.message)
                skipped += 1
        batches.extend(builder.pack(fragments))

    logger.info("Built {} query batches", len(batches))
    return batches, skipped
