"""
Exception hierarchy for the exam job tracker.

Provides layered exception structure for fetch and polling errors.
All exceptions include context for observability and debugging.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the tracker
"""

import enum
from typing import Any


class ExamTrackerException(Exception):
    """Base exception for all exam tracker errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ValidationError(ExamTrackerException):
    """Raised when a caller passes an invalid argument."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class FetchErrorKind(str, enum.Enum):
    """
    Boundary failure classes.

    NETWORK: transport failure or timeout; transient
    NOT_FOUND: job id unknown to the backend; terminal, never retried
    SERVER: 5xx, unexpected status, or malformed payload; transient
    """

    NETWORK = "network"
    NOT_FOUND = "not_found"
    SERVER = "server"


class FetchError(ExamTrackerException):
    """Base exception for a failed round trip to the grading backend."""

    kind: FetchErrorKind = FetchErrorKind.SERVER

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize fetch error.

        Args:
            message: Error message
            job_id: Job the request was about, if any
            status_code: HTTP status code, if a response was received
            details: Additional context
        """
        details = details or {}
        if job_id:
            details["job_id"] = job_id
        if status_code is not None:
            details["status_code"] = status_code
        self.job_id = job_id
        self.status_code = status_code
        super().__init__(message, details)

    @property
    def is_transient(self) -> bool:
        """Whether the poll scheduler should back off and retry."""
        return self.kind is not FetchErrorKind.NOT_FOUND


class NetworkError(FetchError):
    """Raised when the backend cannot be reached or the request times out."""

    kind = FetchErrorKind.NETWORK


class NotFoundError(FetchError):
    """Raised when the backend does not know the job id."""

    kind = FetchErrorKind.NOT_FOUND


class ServerError(FetchError):
    """Raised on 5xx responses, unexpected statuses, and malformed payloads."""

    kind = FetchErrorKind.SERVER


class PollingExhausted(ExamTrackerException):
    """
    Client-side terminal condition after too many consecutive poll failures.

    Distinct from a backend-reported ``failed`` job: re-subscribing to the
    job resumes polling.
    """

    def __init__(
        self,
        job_id: str,
        attempts: int,
        last_error: FetchError | None = None,
    ) -> None:
        """
        Initialize polling exhausted error.

        Args:
            job_id: Job whose polling gave up
            attempts: Number of consecutive failed polls
            last_error: The failure that crossed the bound
        """
        details: dict[str, Any] = {"job_id": job_id, "attempts": attempts}
        if last_error is not None:
            details["last_error"] = last_error.message
        self.job_id = job_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__("polling exhausted", details)
