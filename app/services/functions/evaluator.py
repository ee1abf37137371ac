"""Live evaluation - cache lookup for one function call."""

from collections.abc import Sequence
from typing import Any

from loguru import logger

from app.errors import ArityError, UnknownFunctionError
from app.models.common import Marker
from app.repositories.common.cache import CacheRepository
from app.services.functions.registry import FunctionRegistry
from app.services.keys import CacheKeyBuilder


class FunctionEvaluator:
    """Single entry point for every registered function."""

    def __init__(self, registry: FunctionRegistry, key_builder: CacheKeyBuilder, cache: CacheRepository):
        self._registry = registry
        self._keys = key_builder
        self._cache = cache

    def cache_key(self, function_name: str, values: Sequence[Any]) -> str:
        """Key for a call, validating name and arity."""
        function = self._registry.get(function_name)
        if function is None:
            raise UnknownFunctionError(function_name)
        if len(values) > function.arity:
            raise ArityError(function.name, len(values), function.arity)
        return self._keys.build(function.name, function.parameters, values)

    def evaluate(self, function_name: str, values: Sequence[Any]) -> Any:
        """Cached value, Marker.NULL or Marker.REFRESH. Never queries the data source."""
        key = self.cache_key(function_name, values)
        result = self._cache.lookup(key)
        if result is Marker.REFRESH:
            logger.debug("Cache miss: {}", key)
        return result
