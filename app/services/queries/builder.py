"""DAX query builder - renders pools and orphans, packs them into batches.

Every fragment returns rows of ("CacheKey", "Result"). Cache keys are always
emitted as literals computed by the key builder from the same canonical
values that drive the filters, so a stored row matches what a synchronous
lookup computes.
"""

import re
from collections.abc import Sequence

from loguru import logger

from app.errors import FragmentRenderError
from app.models.functions import DataType, FilterKind, FunctionDescriptor, ParameterDescriptor
from app.models.refresh import PendingEvaluation, Pool, QueryBatch, QueryFragment
from app.services.keys import LIST_SEPARATOR, CacheKeyBuilder
from settings import MAX_QUERY_LENGTH

SINGLE_PREFIX = "EVALUATE "
UNION_OPEN = "EVALUATE UNION("
UNION_CLOSE = ")"
SEPARATOR = ","

_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")


def text_literal(value: str) -> str:
    """DAX string literal."""
    return '"' + value.replace('"', '""') + '"'


def measure_ref(measure: str) -> str:
    """Normalize a measure to [Name]; table-qualified references are kept."""
    name = measure.strip()
    if "[" in name and not name.startswith("["):
        return name
    while name.startswith("[") and name.endswith("]"):
        name = name[1:-1].strip()
    return f"[{name}]"


def wrap(fragments: Sequence[QueryFragment]) -> str:
    """Final query text for a batch."""
    if not fragments:
        return ""
    if len(fragments) == 1:
        return SINGLE_PREFIX + fragments[0].text
    return UNION_OPEN + SEPARATOR.join(f.text for f in fragments) + UNION_CLOSE


def wrapped_length(fragment_lengths: Sequence[int]) -> int:
    """Length of wrap() output without rendering it."""
    if not fragment_lengths:
        return 0
    if len(fragment_lengths) == 1:
        return len(SINGLE_PREFIX) + fragment_lengths[0]
    return len(UNION_OPEN) + sum(fragment_lengths) + len(fragment_lengths) - 1 + len(UNION_CLOSE)


class DaxQueryBuilder:
    """Renders query fragments and packs them under a length ceiling."""

    def __init__(self, key_builder: CacheKeyBuilder, max_query_length: int = MAX_QUERY_LENGTH):
        self._keys = key_builder
        self._max_query_length = max_query_length

    # ========== Literals and filters ==========

    def format_literal(self, value: str, param: ParameterDescriptor) -> str:
        """Format one scalar value for a filter on `param`."""
        value = value.strip()
        if param.data_type == DataType.NUMBER:
            if not _NUMBER_RE.match(value):
                raise FragmentRenderError(f"Not a number for {param.name}: {value!r}")
            return value

        if param.data_type == DataType.DATE:
            parsed = self._keys.to_date(value, param)
            if parsed is None:
                raise FragmentRenderError(f"Not a date for {param.name}: {value!r}")
            return f"DATE({parsed.year},{parsed.month},{parsed.day})"

        return text_literal(value)

    def _sort_key(self, value: str, param: ParameterDescriptor):
        if param.data_type == DataType.NUMBER and _NUMBER_RE.match(value):
            return float(value)
        if param.data_type == DataType.DATE:
            parsed = self._keys.to_date(value, param)
            if parsed is not None:
                return parsed.isoformat()
        return value

    def build_filter(self, param: ParameterDescriptor, value: str) -> str | None:
        """Filter expression for one parameter value; None when empty."""
        values = [v.strip() for v in value.split(LIST_SEPARATOR) if v.strip()]
        if not values:
            return None

        field = param.field_ref
        # Render every element before ordering; a bad one raises FragmentRenderError
        literals = {v: self.format_literal(v, param) for v in values}
        if param.filter_kind == FilterKind.RANGE_START:
            low = min(values, key=lambda v: self._sort_key(v, param))
            return f"{field}>={literals[low]}"

        if param.filter_kind == FilterKind.RANGE_END:
            high = max(values, key=lambda v: self._sort_key(v, param))
            return f"{field}<={literals[high]}"

        if len(literals) == 1:
            return f"{field}={literals[values[0]]}"
        return f"{field} IN {{{SEPARATOR.join(literals.values())}}}"

    def calculate(self, function: FunctionDescriptor, values: Sequence[str], skip: int | None = None) -> str:
        """Measure filtered by every non-empty value except position `skip`."""
        filters = []
        for position, param in enumerate(function.parameters):
            if position == skip or position >= len(values) or not values[position]:
                continue
            expr = self.build_filter(param, values[position])
            if expr:
                filters.append(expr)

        measure = measure_ref(function.measure)
        if filters:
            return f"CALCULATE({measure},{SEPARATOR.join(filters)})"
        return measure

    # ========== Fragments ==========

    def row_fragment(self, function: FunctionDescriptor, key: str, values: Sequence[str]) -> QueryFragment:
        """Single-row fragment for one parameter combination."""
        text = f'ROW("CacheKey",{text_literal(key)},"Result",{self.calculate(function, values)})'
        return QueryFragment(text=text, keys=(key,), dataset_id=function.dataset_id)

    def render_orphan(self, item: PendingEvaluation) -> QueryFragment:
        """Fragment for an item that is not part of any pool."""
        return self.row_fragment(item.function, item.cache_key, item.canonical_values)

    def pool_key(self, pool: Pool, varying_value: str) -> str:
        """Cache key for one varying value, built from the pool's stored fixed values."""
        return self._keys.build_canonical(pool.function.name, pool.values_for(varying_value))

    def render_pool(self, pool: Pool) -> list[QueryFragment]:
        """Fragments for a pool.

        List-filtered pools are rendered as set fragments (one query row per
        varying value, keyed through SWITCH); anything else falls back to one
        ROW fragment per distinct varying value.
        """
        set_values: list[str] = []
        row_values: list[str] = []
        settable = self._set_form_allowed(pool)
        for value in pool.varying_values:
            if settable and value and LIST_SEPARATOR not in value:
                set_values.append(value)
            else:
                row_values.append(value)

        fragments = self._set_fragments(pool, set_values) if set_values else []
        for value in row_values:
            fragments.append(self.row_fragment(pool.function, self.pool_key(pool, value), pool.values_for(value)))
        return fragments

    def _set_form_allowed(self, pool: Pool) -> bool:
        param = pool.function.parameters[pool.varying_index]
        if param.filter_kind not in (FilterKind.LIST, None):
            return False
        # A fixed filter on the same field would override the row context
        for position, value in pool.fixed_values.items():
            other = pool.function.parameter(position)
            if value and other is not None and other.field_ref == param.field_ref:
                return False
        return True

    def _set_fragments(self, pool: Pool, values: list[str]) -> list[QueryFragment]:
        param = pool.function.parameters[pool.varying_index]
        budget = self._max_query_length - len(UNION_OPEN) - len(UNION_CLOSE)
        result = self.calculate(pool.function, pool.values_for(""), skip=pool.varying_index)
        base = len(self._set_text(param, [], [], result))

        fragments = []
        literals: list[str] = []
        pairs: list[str] = []
        keys: list[str] = []
        length = base
        for value in values:
            literal = self.format_literal(value, param)
            key = self.pool_key(pool, value)
            pair = f"{literal},{text_literal(key)}"
            added = len(literal) + len(pair) + 1 + (1 if literals else 0)
            if literals and length + added > budget:
                fragments.append(self._set_fragment(pool, param, literals, pairs, keys, result))
                literals, pairs, keys = [], [], []
                added = len(literal) + len(pair) + 1
                length = base
            literals.append(literal)
            pairs.append(pair)
            keys.append(key)
            length += added

        fragments.append(self._set_fragment(pool, param, literals, pairs, keys, result))
        if len(fragments) > 1:
            logger.debug("Pool {} split into {} set fragments", pool.function.name, len(fragments))
        return fragments

    def _set_fragment(
        self,
        pool: Pool,
        param: ParameterDescriptor,
        literals: list[str],
        pairs: list[str],
        keys: list[str],
        result: str,
    ) -> QueryFragment:
        return QueryFragment(
            text=self._set_text(param, literals, pairs, result),
            keys=tuple(keys),
            dataset_id=pool.function.dataset_id,
        )

    @staticmethod
    def _set_text(param: ParameterDescriptor, literals: list[str], pairs: list[str], result: str) -> str:
        field = param.field_ref
        match = f"UPPER({field})" if param.data_type == DataType.TEXT else field
        switch = SEPARATOR.join([match, *pairs])
        return (
            f"SELECTCOLUMNS(FILTER(VALUES({field}),{field} IN {{{SEPARATOR.join(literals)}}}),"
            f'"CacheKey",SWITCH({switch}),"Result",{result})'
        )

    # ========== Batches ==========

    def pack(self, fragments: Sequence[QueryFragment], max_query_length: int | None = None) -> list[QueryBatch]:
        """Greedily pack fragments into batches, one dataset per batch.

        A batch is closed as soon as the next fragment would push its rendered
        length over the limit. A fragment longer than the limit on its own is
        still emitted, alone in its batch.
        """
        limit = self._max_query_length if max_query_length is None else max_query_length

        by_dataset: dict[str | None, list[QueryFragment]] = {}
        for fragment in fragments:
            by_dataset.setdefault(fragment.dataset_id, []).append(fragment)

        batches: list[QueryBatch] = []
        for dataset_id, group in by_dataset.items():
            current: list[QueryFragment] = []
            lengths: list[int] = []
            for fragment in group:
                if current and wrapped_length([*lengths, len(fragment)]) > limit:
                    batches.append(QueryBatch(fragments=current, text=wrap(current), dataset_id=dataset_id))
                    current, lengths = [], []
                current.append(fragment)
                lengths.append(len(fragment))
                if wrapped_length(lengths) > limit:
                    logger.warning("Fragment of {} chars exceeds max query length {}", len(fragment), limit)
            if current:
                batches.append(QueryBatch(fragments=current, text=wrap(current), dataset_id=dataset_id))

        return batches

    # ========== Single calls ==========

    def build_calculate_query(self, function: FunctionDescriptor, raw_values: Sequence[str]) -> str:
        """Standalone query for one call."""
        values = self._keys.canonicalize_all(raw_values, function.parameters)
        return f"EVALUATE {{ {self.calculate(function, values)} }}"
