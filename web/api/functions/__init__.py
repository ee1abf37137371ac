"""Function API."""

from web.api.functions.views import evaluate_function

__all__ = ["evaluate_function"]
