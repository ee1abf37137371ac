"""Pending evaluation collector - finds formula cells that need a result."""

from typing import Any

from loguru import logger

from app.errors import ArityError, FormulaParseError, KeyBuildError
from app.models.common import Marker
from app.models.refresh import FormulaCell, PendingEvaluation, RefreshScope
from app.repositories.common.cache import CacheRepository
from app.services.functions import FunctionRegistry
from app.services.keys import CacheKeyBuilder
from refresh.formulas import function_name, parse_call, token_value
from refresh.protocols import FormulaSource

MISS_MARKERS = (Marker.REFRESH.display, "#N/A")


def needs_refresh(display: Any) -> bool:
    """Displayed value shows a miss."""
    text = display.display if isinstance(display, Marker) else str(display)
    return any(marker in text for marker in MISS_MARKERS)


class PendingEvaluationCollector:
    """Turns formula cells into pending evaluations."""

    def __init__(
        self,
        source: FormulaSource,
        registry: FunctionRegistry,
        key_builder: CacheKeyBuilder,
        cache: CacheRepository,
    ):
        self._source = source
        self._registry = registry
        self._keys = key_builder
        self._cache = cache

    def collect(self, scope: RefreshScope, force: bool = False) -> tuple[list[PendingEvaluation], int]:
        """Pending evaluations in scope and the number of cells skipped as unparsable."""
        items: list[PendingEvaluation] = []
        skipped = 0
        for cell in self._source.list_formula_cells(scope):
            name = function_name(cell.formula)
            if name is None or self._registry.get(name) is None:
                continue
            if not force and cell.display is not None and not needs_refresh(cell.display):
                continue

            try:
                item = self.pending(cell)
            except (FormulaParseError, ArityError, KeyBuildError) as e:
                logger.debug("Skipping {}: {}", cell.formula, e.message)
                skipped += 1
                continue

            if not force and cell.display is None and self._cache.lookup(item.cache_key) is not Marker.REFRESH:
                continue
            items.append(item)

        logger.info("Collected {} cells {} ({} skipped)", len(items), scope.describe(), skipped)
        return items, skipped

    def pending(self, cell: FormulaCell) -> PendingEvaluation:
        """Pending evaluation for one registered formula cell."""
        name, tokens = parse_call(cell.formula)
        function = self._registry.get(name)
        if function is None:
            raise FormulaParseError(f"Unknown function: {name}")
        if len(tokens) > function.arity:
            raise ArityError(function.name, len(tokens), function.arity)

        raw = [token_value(token, lambda t: self._resolve(t, cell.handle)) for token in tokens]
        raw.extend([""] * (function.arity - len(raw)))
        canonical = self._keys.canonicalize_all(raw, function.parameters)

        return PendingEvaluation(
            cache_key=self._keys.build_canonical(function.name, canonical),
            function=function,
            raw_values=tuple(raw),
            canonical_values=tuple(canonical),
            signature=cell.formula,
            cell=cell.handle,
        )

    def _resolve(self, token: str, origin: Any) -> Any:
        try:
            return self._source.resolve_reference(token, origin)
        except FormulaParseError:
            # Unresolvable tokens are kept as literal text
            logger.debug("Reference not resolved, using literal: {}", token)
            return token
