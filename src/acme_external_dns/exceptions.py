"""Solver and responder exceptions."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acme_external_dns.models import RecordIdentity


class SolverError(Exception):
    """Base exception for all errors raised by this library.

    None of these are fatal to the process; each one describes a single
    failed call that the caller may retry.
    """


class ConfigDecodeError(SolverError):
    """Provider-specific solver config could not be decoded."""

    pass


class StoreError(SolverError):
    """The record store rejected or failed an operation.

    Args:
        message: Human readable description.
        identity: The record the operation targeted, if any.
        status_code: HTTP status code returned by the store, if any.
        detail: Store-supplied error detail, if any.
    """

    def __init__(
        self,
        message: str,
        identity: "RecordIdentity | None" = None,
        status_code: int | None = None,
        detail: str | None = None,
    ):
        self.identity = identity
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class RecordNotFoundError(StoreError):
    """The targeted record does not exist in the store."""

    pass


class RecordConflictError(StoreError):
    """The record changed underneath an optimistic update or create."""

    pass


class DeadlineExceeded(SolverError):
    """An operation did not finish before its deadline."""

    pass


class OperationCancelled(SolverError):
    """An operation was aborted because the process is stopping."""

    pass


class UnsupportedQueryType(SolverError):
    """The responder was asked for a record type it does not serve."""

    def __init__(self, qtype: str):
        self.qtype = qtype
        super().__init__(f"unimplemented record type {qtype}")
