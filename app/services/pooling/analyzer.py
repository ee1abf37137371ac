"""Pool analyzer - finds pending evaluations that differ in one parameter."""

from collections import defaultdict

from loguru import logger

from app.models.refresh import PendingEvaluation, Pool, PoolAnalysis
from settings import MIN_POOL_SIZE


def _values(item: PendingEvaluation) -> tuple[str, ...]:
    """Canonical values padded to the function's parameter count."""
    values = tuple(item.canonical_values)
    missing = item.function.arity - len(values)
    return values + ("",) * missing if missing > 0 else values


class PoolAnalyzer:
    """Groups pending evaluations into pools and orphans.

    For each function, every parameter position is tried in ascending order as
    the varying one; items that agree on all other positions form a pool when
    there are at least `min_pool_size` of them. An item joins at most one pool.
    """

    def __init__(self, min_pool_size: int = MIN_POOL_SIZE):
        self._min_pool_size = min_pool_size

    def analyze(self, items: list[PendingEvaluation], min_pool_size: int | None = None) -> PoolAnalysis:
        """Partition items into pools and orphans."""
        min_size = self._min_pool_size if min_pool_size is None else min_pool_size
        result = PoolAnalysis()
        if not items:
            return result

        by_function: dict[str, list[PendingEvaluation]] = defaultdict(list)
        for item in items:
            by_function[item.function.name].append(item)

        for name in sorted(by_function):
            pools, orphans = self._analyze_function(by_function[name], min_size)
            result.pools.extend(pools)
            result.orphans.extend(orphans)

        logger.info(
            "Pool analysis: {} pools ({} items), {} orphans",
            len(result.pools),
            result.pooled_count,
            len(result.orphans),
        )
        return result

    def _analyze_function(
        self,
        items: list[PendingEvaluation],
        min_size: int,
    ) -> tuple[list[Pool], list[PendingEvaluation]]:
        function = items[0].function
        if function.arity == 0:
            return [], list(items)

        pools: list[Pool] = []
        unassigned = list(items)

        for varying in range(function.arity):
            groups: dict[tuple[str, ...], list[PendingEvaluation]] = defaultdict(list)
            for item in unassigned:
                values = _values(item)
                groups[values[:varying] + values[varying + 1 :]].append(item)

            assigned: set[int] = set()
            for signature in sorted(groups):
                members = groups[signature]
                if len(members) < min_size:
                    continue

                first = _values(members[0])
                pool = Pool(
                    function=function,
                    varying_index=varying,
                    fixed_values={i: v for i, v in enumerate(first) if i != varying},
                    varying_values=sorted({_values(m)[varying] for m in members}),
                    members=members,
                )
                pools.append(pool)
                assigned.update(id(m) for m in members)
                logger.debug(
                    "Pool {}: param {} varies over {} values ({} items)",
                    function.name,
                    varying,
                    len(pool.varying_values),
                    len(members),
                )

            unassigned = [item for item in unassigned if id(item) not in assigned]
            if not unassigned:
                break

        return pools, unassigned
