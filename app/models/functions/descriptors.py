"""Function and parameter descriptors - loaded once, never mutated."""

from dataclasses import dataclass, field
from enum import StrEnum


class DataType(StrEnum):
    """Parameter data types."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"


class FilterKind(StrEnum):
    """How a parameter filters its field."""

    LIST = "List"
    RANGE_START = "RangeStart"
    RANGE_END = "RangeEnd"


@dataclass(frozen=True)
class ParameterDescriptor:
    """One positional parameter of a function."""

    name: str
    position: int
    table_name: str
    field_name: str
    data_type: DataType = DataType.TEXT
    filter_kind: FilterKind | None = FilterKind.LIST
    optional: bool = True

    @property
    def field_ref(self) -> str:
        """Field reference as written in DAX: 'Table'[Field]."""
        table = self.table_name.replace("'", "''")
        name = self.field_name.replace("]", "]]")
        return f"'{table}'[{name}]"


@dataclass(frozen=True)
class FunctionDescriptor:
    """A registered function: a measure filtered by ordered parameters."""

    name: str
    measure: str
    parameters: tuple[ParameterDescriptor, ...] = field(default_factory=tuple)
    dataset_id: str | None = None

    @property
    def arity(self) -> int:
        return len(self.parameters)

    def parameter(self, position: int) -> ParameterDescriptor | None:
        """Descriptor at a position, None past the end."""
        if 0 <= position < len(self.parameters):
            return self.parameters[position]
        return None
