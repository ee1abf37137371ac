"""Function registry and live evaluation."""

from app.services.functions.evaluator import FunctionEvaluator
from app.services.functions.registry import FunctionRegistry, load_registry, parse_registry

__all__ = ["FunctionEvaluator", "FunctionRegistry", "load_registry", "parse_registry"]
