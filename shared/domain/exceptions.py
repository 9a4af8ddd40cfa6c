"""Errors shared by every bounded context."""


class DomainError(Exception):
    """Base class for errors raised deliberately by domain code."""

    retryable = False


class TransientStoreError(DomainError):
    """
    The store could not complete the unit of work right now.

    Raised for lock-wait timeouts, deadlocks, serialization failures and
    lost connections. Nothing was committed; the whole operation may be
    retried.
    """

    retryable = True
