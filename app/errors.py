"""Engine errors - per-item errors are local, batch errors are reported."""


class CubeCacheError(Exception):
    """Base error for the cache engine."""

    def __init__(self, message: str = "Cube cache error"):
        self.message = message
        super().__init__(self.message)


class RegistryError(CubeCacheError):
    """Invalid function configuration."""


class UnknownFunctionError(CubeCacheError):
    """Function name is not in the registry."""

    def __init__(self, function_name: str):
        self.function_name = function_name
        super().__init__(f"Unknown function: {function_name}")


class ArityError(CubeCacheError):
    """Too many arguments for a function."""

    def __init__(self, function_name: str, given: int, allowed: int):
        self.function_name = function_name
        self.given = given
        self.allowed = allowed
        super().__init__(f"{function_name} takes at most {allowed} arguments ({given} given)")


class FormulaParseError(CubeCacheError):
    """Formula or argument could not be parsed."""


class KeyBuildError(CubeCacheError):
    """Cache key could not be built."""


class FragmentRenderError(CubeCacheError):
    """Value cannot be rendered as a query literal."""


class BatchExecutionError(CubeCacheError):
    """Query batch failed in the executor."""

    def __init__(self, batch_index: int, cause: BaseException):
        self.batch_index = batch_index
        self.cause = cause
        super().__init__(f"Batch {batch_index} failed: {cause}")


class StoreRejected(CubeCacheError):
    """Cache entry refused by the store (blank key)."""
