"""Function API views - what a worksheet cell displays for a call."""

from collections.abc import Sequence
from typing import Any

from app.container import Container
from app.errors import CubeCacheError
from app.models.common import Marker

ERROR_PREFIX = "#ERROR: "


def evaluate_function(container: Container, function_name: str, values: Sequence[Any]) -> Any:
    """Cached value or a display marker; errors become #ERROR text."""
    try:
        result = container.evaluator.evaluate(function_name, values)
    except CubeCacheError as e:
        return ERROR_PREFIX + e.message

    if isinstance(result, Marker):
        return result.display
    return result
