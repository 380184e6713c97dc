"""
Custom Exceptions - Application-specific error classes.

This module defines the error taxonomy shared by every component:
- Each exception has an HTTP status code and an ErrorKind error code
- Components raise them internally; public operations convert them into
  tagged Result values (see twinlink.core.results)
- The API layer maps them to JSON error bodies
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""
    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    CONCURRENCY_EXCEEDED = "concurrency_exceeded"
    STORE_UNAVAILABLE = "store_unavailable"
    COLLABORATOR_FAILURE = "collaborator_failure"
    UNKNOWN_AGENT = "unknown_agent"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class TwinLinkError(Exception):
    """
    Base exception for all conversation-core errors.

    Subclass this for specific error types.
    """
    status_code: int = 500
    error_code: ErrorKind = ErrorKind.INTERNAL
    retryable: bool = False

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Convert to error response dict."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class InvalidArgument(TwinLinkError):
    """Raised for malformed identifiers, empty bodies or too few participants."""
    status_code = 400
    error_code = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details=f"field={field}" if field else None)
        self.field = field


class NotFound(TwinLinkError):
    """Raised when a conversation or session does not exist."""
    status_code = 404
    error_code = ErrorKind.NOT_FOUND

    def __init__(self, resource: str, key: str):
        super().__init__(
            message=f"{resource} not found: {key}",
            details=f"key={key}"
        )
        self.resource = resource
        self.key = key


class ConcurrencyExceeded(TwinLinkError):
    """Raised when optimistic writes kept conflicting past the retry budget."""
    status_code = 409
    error_code = ErrorKind.CONCURRENCY_EXCEEDED
    retryable = True

    def __init__(self, key: str, attempts: int):
        super().__init__(
            message=f"Too many concurrent writes to {key}; gave up after {attempts} attempts",
            details=f"attempts={attempts}"
        )
        self.key = key
        self.attempts = attempts


class StoreUnavailable(TwinLinkError):
    """Raised when the document store cannot be reached or fails."""
    status_code = 503
    error_code = ErrorKind.STORE_UNAVAILABLE
    retryable = True

    def __init__(self, message: str = "Document store unavailable"):
        super().__init__(message)


class CollaboratorFailure(TwinLinkError):
    """Raised when a completion, classification or agent call fails."""
    status_code = 502
    error_code = ErrorKind.COLLABORATOR_FAILURE
    retryable = True

    def __init__(self, message: str = "AI collaborator failed"):
        super().__init__(message)


class UnknownAgent(TwinLinkError):
    """Raised when routing targets a name missing from the dispatch table."""
    status_code = 404
    error_code = ErrorKind.UNKNOWN_AGENT

    def __init__(self, agent_name: str):
        super().__init__(
            message=f"Agent '{agent_name}' is not available",
            details=f"agent={agent_name}"
        )
        self.agent_name = agent_name


class OperationTimeout(TwinLinkError):
    """Raised when a store or collaborator call exceeds its deadline."""
    status_code = 504
    error_code = ErrorKind.TIMEOUT
    retryable = True

    def __init__(self, operation: str, timeout_seconds: float):
        super().__init__(
            message=f"{operation} timed out after {timeout_seconds:g} seconds",
            details=f"timeout={timeout_seconds:g}s"
        )
        self.operation = operation
        self.timeout_seconds = timeout_seconds


class WriteConflict(Exception):
    """
    Raised by a document store when a conditional write loses the race.

    Never leaves the storage package: the conversation store turns
    exhausted conflicts into ConcurrencyExceeded.
    """

    def __init__(self, collection: str, key: str):
        super().__init__(f"Write conflict on {collection}/{key}")
        self.collection = collection
        self.key = key


_STATUS_BY_KIND = {
    cls.error_code: cls.status_code
    for cls in (
        InvalidArgument,
        NotFound,
        ConcurrencyExceeded,
        StoreUnavailable,
        CollaboratorFailure,
        UnknownAgent,
        OperationTimeout,
    )
}


def status_code_for(kind: ErrorKind) -> int:
    """HTTP status used when a failed Result of this kind reaches the API."""
    return _STATUS_BY_KIND.get(kind, 500)
