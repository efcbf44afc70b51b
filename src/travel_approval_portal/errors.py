"""Typed failures raised by the approval workflow."""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """Stable error identifiers exposed at the portal boundary."""

    DIRECTORY_LOOKUP_FAILED = "directory_lookup_failed"
    NOT_CURRENT_APPROVER = "not_current_approver"
    INVALID_TRANSITION = "invalid_transition"
    CHAIN_EXHAUSTED_UNEXPECTEDLY = "chain_exhausted_unexpectedly"
    NOT_AUTHORIZED = "not_authorized"
    REQUEST_NOT_FOUND = "request_not_found"
    CONCURRENT_MODIFICATION = "concurrent_modification"
    INVALID_REQUEST = "invalid_request"


class WorkflowError(Exception):
    """Base class for approval workflow failures."""

    kind: ErrorKind = ErrorKind.INVALID_REQUEST


class DirectoryLookupFailed(WorkflowError):
    """The org directory could not resolve an employee."""

    kind = ErrorKind.DIRECTORY_LOOKUP_FAILED

    def __init__(self, email: str, message: str | None = None) -> None:
        self.email = email
        super().__init__(message or f"Employee profile not found: {email}")


class NotCurrentApprover(WorkflowError):
    """An actor tried to decide a request out of turn."""

    kind = ErrorKind.NOT_CURRENT_APPROVER

    def __init__(self, expected_email: str, expected_name: str) -> None:
        self.expected_email = expected_email
        self.expected_name = expected_name
        super().__init__(
            f"You are not the current approver. Waiting for {expected_name} to approve."
        )


class InvalidTransition(WorkflowError):
    """The requested decision is not valid for the request's status."""

    kind = ErrorKind.INVALID_TRANSITION


class ChainExhaustedUnexpectedly(WorkflowError):
    """A pending request points past the end of its approval chain."""

    kind = ErrorKind.CHAIN_EXHAUSTED_UNEXPECTEDLY


class NotAuthorized(WorkflowError):
    """The actor lacks the role required for the operation."""

    kind = ErrorKind.NOT_AUTHORIZED


class RequestNotFound(WorkflowError):
    """No travel request exists for the given identifier."""

    kind = ErrorKind.REQUEST_NOT_FOUND

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(f"Request not found: {request_id}")


class ConcurrentModification(WorkflowError):
    """A save lost a compare-and-swap race against another writer."""

    kind = ErrorKind.CONCURRENT_MODIFICATION

    def __init__(self, request_id: str, expected: int, actual: int) -> None:
        self.request_id = request_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Request {request_id} changed concurrently"
            f" (expected version {expected}, found {actual})"
        )
