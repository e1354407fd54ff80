"""
Error Types
Failure classes for the metrics service, one per stage of the data flow.
"""


class MetricsError(Exception):
    """Base class for all deploy_metrics errors."""


class SchemaError(MetricsError):
    """The store could not be opened or the schema could not be created."""


class LoadError(MetricsError):
    """A bulk reload of the raw fact tables failed and was rolled back."""


class AggregationError(MetricsError):
    """A derived table refresh failed; the previous snapshot is still in place."""


class QueryError(MetricsError):
    """A read-only metrics query could not be answered."""
