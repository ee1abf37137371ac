"""Function registry models."""

from app.models.functions.descriptors import (
    DataType,
    FilterKind,
    FunctionDescriptor,
    ParameterDescriptor,
)

__all__ = [
    "DataType",
    "FilterKind",
    "FunctionDescriptor",
    "ParameterDescriptor",
]
