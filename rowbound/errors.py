"""Exception types raised by rowbound.

Driver exceptions are never wrapped: they reach the caller unchanged.
"""


class RowboundError(Exception):
    """Base class for errors raised by rowbound itself."""


class ConfigurationError(RowboundError, ValueError):
    """Invalid metadata or query construction (unknown relation, bad placeholders, ...)."""


class NoRowsError(RowboundError, LookupError):
    """A query expecting exactly one destination row returned none."""

    def __init__(self, message: str = "no rows in result set"):
        super().__init__(message)


class MappingError(RowboundError, TypeError):
    """A returned column cannot be stored in the scan destination."""


class TransactionError(RowboundError):
    """A transaction was used after it finished."""


__all__ = [
    "RowboundError",
    "ConfigurationError",
    "NoRowsError",
    "MappingError",
    "TransactionError",
]
