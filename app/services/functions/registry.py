"""Function registry - immutable, case-insensitive name lookup."""

import json
import uuid
from collections.abc import Iterable, Iterator
from pathlib import Path
from types import MappingProxyType

from loguru import logger
from pydantic import ValidationError

from app.errors import RegistryError
from app.models.functions import DataType, FilterKind, FunctionDescriptor, ParameterDescriptor
from app.services.functions.schemas import FunctionConfigSchema, ParameterConfigSchema, RegistryConfigSchema
from settings import MAX_PARAMETERS

_DATA_TYPE_ALIASES = {
    "text": DataType.TEXT,
    "string": DataType.TEXT,
    "number": DataType.NUMBER,
    "integer": DataType.NUMBER,
    "decimal": DataType.NUMBER,
    "date": DataType.DATE,
    "datetime": DataType.DATE,
}

_FILTER_KINDS = {kind.value.lower(): kind for kind in FilterKind}


class FunctionRegistry:
    """Registered functions by name. Built once, never mutated."""

    def __init__(self, functions: Iterable[FunctionDescriptor] = ()):
        by_name: dict[str, FunctionDescriptor] = {}
        for function in functions:
            name = function.name.strip().upper()
            if name in by_name:
                raise RegistryError(f"Duplicate function: {function.name}")
            by_name[name] = function
        self._functions = MappingProxyType(by_name)

    def get(self, name: str) -> FunctionDescriptor | None:
        """Descriptor for a function name (any case), None when unknown."""
        return self._functions.get(name.strip().upper())

    def names(self) -> list[str]:
        return [f.name for f in self._functions.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[FunctionDescriptor]:
        return iter(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)


def _is_guid(value: str) -> bool:
    if len(value) != 36:
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _parameter(function_name: str, schema: ParameterConfigSchema) -> ParameterDescriptor:
    data_type = _DATA_TYPE_ALIASES.get((schema.data_type or "text").strip().lower())
    if data_type is None:
        raise RegistryError(f"{function_name}.{schema.name}: unknown data type {schema.data_type!r}")

    # Missing or unknown filter types filter as a list
    filter_kind = _FILTER_KINDS.get((schema.filter_type or "").strip().lower(), FilterKind.LIST)

    return ParameterDescriptor(
        name=schema.name,
        position=schema.position,
        table_name=schema.table_name,
        field_name=schema.field_name,
        data_type=data_type,
        filter_kind=filter_kind,
        optional=schema.is_optional,
    )


def build_function(schema: FunctionConfigSchema) -> FunctionDescriptor:
    """Validate one function entry and turn it into a descriptor."""
    name = schema.function_name.strip()
    if not name:
        raise RegistryError("Function without a name")
    if len(schema.parameters) > MAX_PARAMETERS:
        raise RegistryError(f"{name}: {len(schema.parameters)} parameters, at most {MAX_PARAMETERS} allowed")

    parameters = sorted((_parameter(name, p) for p in schema.parameters), key=lambda p: p.position)
    positions = [p.position for p in parameters]
    if positions != list(range(len(parameters))):
        raise RegistryError(f"{name}: parameter positions must be 0..{len(parameters) - 1}, got {positions}")

    dataset_id = schema.dataset_id
    prefix = schema.dataset_prefix
    if prefix and dataset_id and _is_guid(dataset_id) and not dataset_id.startswith(prefix):
        dataset_id = prefix + dataset_id

    return FunctionDescriptor(
        name=name,
        measure=schema.measure_name,
        parameters=tuple(parameters),
        dataset_id=dataset_id,
    )


def parse_registry(data: dict) -> FunctionRegistry:
    """Build a registry from the decoded configuration document."""
    try:
        config = RegistryConfigSchema.model_validate(data)
    except ValidationError as e:
        raise RegistryError(f"Invalid function configuration: {e}") from e
    return FunctionRegistry(build_function(f) for f in config.functions)


def load_registry(path: str | Path) -> FunctionRegistry:
    """Load the function configuration file; a missing file gives an empty registry."""
    path = Path(path)
    if not path.exists():
        logger.warning("Function config not found: {}. No functions registered.", path)
        return FunctionRegistry()

    try:
        data = json.loads(path.read_text(encoding="utf-8-sig"))
    except json.JSONDecodeError as e:
        raise RegistryError(f"{path}: not valid JSON ({e})") from e

    registry = parse_registry(data)
    logger.info("Loaded {} functions from {}", len(registry), path)
    return registry
