"""
Custom exception classes for the polledconfig package.

Provides structured error handling with domain-specific exceptions for the
layers of the polling pipeline: the remote source, the transport underneath
it, and the scheduler that drives both.
"""

from typing import Optional


class PolledConfigException(Exception):
    """Base exception class for all polledconfig exceptions."""

    pass


class SourceError(PolledConfigException):
    """Raised when a configuration source cannot produce a value set."""

    pass


class DatastoreTransportError(SourceError):
    """
    Raised when the Datastore REST transport fails.

    Wraps HTTP status errors, connection errors and undecodable responses so
    the source adapter can convert them into a failed poll result.

    Example:
        >>> raise DatastoreTransportError(
        ...     "lookup failed",
        ...     operation="lookup",
        ...     status_code=503,
        ... )
    """

    def __init__(self, reason: str, *, operation: str, status_code: Optional[int] = None):
        self.reason = reason
        self.operation = operation
        self.status_code = status_code
        message = f"{operation}: {reason}"
        if status_code is not None:
            message += f" (status={status_code})"
        super().__init__(message)


class SchedulerError(PolledConfigException):
    """Raised when the polling scheduler is used out of order."""

    pass


class BootstrapError(SchedulerError):
    """Raised when the synchronous first poll fails during ``start()``."""

    pass
