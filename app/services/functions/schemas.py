"""Function configuration file schemas."""

from pydantic import BaseModel, Field


class ParameterConfigSchema(BaseModel):
    """One parameter entry."""

    name: str
    position: int
    table_name: str = Field(alias="tableName")
    field_name: str = Field(alias="fieldName")
    data_type: str | None = Field(alias="dataType", default=None)
    filter_type: str | None = Field(alias="filterType", default=None)
    is_optional: bool = Field(alias="isOptional", default=True)

    class Config:
        populate_by_name = True


class FunctionConfigSchema(BaseModel):
    """One function entry."""

    function_name: str = Field(alias="functionName")
    dataset_prefix: str | None = Field(alias="datasetPrefix", default=None)
    dataset_id: str | None = Field(alias="datasetId", default=None)
    measure_name: str = Field(alias="measureName")
    parameters: list[ParameterConfigSchema] = []

    class Config:
        populate_by_name = True


class RegistryConfigSchema(BaseModel):
    """Whole configuration file."""

    functions: list[FunctionConfigSchema] = []
