"""
Error taxonomy for query definitions, rendering and execution.

Caller-input errors (injection, mapper resolution) become 4xx responses;
data-store errors become 5xx on the request path and are absorbed per cycle
by the publish scheduler.
"""


class QueryBridgeError(Exception):
    """Base class for all querybridge errors."""

    pass


class ConfigurationError(QueryBridgeError, ValueError):
    """Raised when a raw query entry or mapper file cannot be loaded."""

    pass


class DefinitionError(QueryBridgeError, ValueError):
    """Raised when a loaded definition lacks the text needed to render SQL
    (blank template, namespace or statement id)."""

    pass


class InjectionDetectedError(QueryBridgeError, ValueError):
    """Raised when a caller-supplied value matches an injection signature."""

    def __init__(self, name: str, value: object, signature: str) -> None:
        self.name = name
        self.value = value
        self.signature = signature
        super().__init__(
            f"SQL injection signature {signature!r} detected in parameter {name!r}"
        )


class MapperResolutionError(QueryBridgeError, ValueError):
    """Raised when a mapper statement cannot be resolved to SQL."""

    pass


class QueryExecutionError(QueryBridgeError, RuntimeError):
    """Raised when the data store fails to execute rendered SQL.

    The driver error is chained as ``__cause__``.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        self.sql = sql
        super().__init__(message)
