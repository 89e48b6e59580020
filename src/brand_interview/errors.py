"""Error taxonomy for the interview progression engine."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Broad failure categories that drive retry and UI decisions."""

    NETWORK = "network"
    SERVICE = "service"
    VALIDATION = "validation"
    TIMEOUT = "timeout"


class InterviewError(RuntimeError):
    """Base class for every error raised by the engine."""

    kind: ErrorKind = ErrorKind.SERVICE
    retryable: bool = True


class NetworkError(InterviewError):
    """Raised when the chat service or document store cannot be reached."""

    kind = ErrorKind.NETWORK


class ServiceError(InterviewError):
    """Raised when the upstream service rejects a call or returns junk."""

    kind = ErrorKind.SERVICE


class RunFailedError(ServiceError):
    """Raised when a run ends in a failed terminal status."""

    def __init__(self, run_id: str, status: str, detail: Optional[str] = None) -> None:
        self.run_id = run_id
        self.status = status
        self.detail = detail
        super().__init__(f"Run {run_id} {status}: {detail or 'Unknown error'}")


class RunCancelledError(RunFailedError):
    """Raised when a run was cancelled before completing."""


class RunTimeoutError(InterviewError):
    """Raised when a run does not settle within the polling budget."""

    kind = ErrorKind.TIMEOUT

    def __init__(self, run_id: str, attempts: int) -> None:
        self.run_id = run_id
        self.attempts = attempts
        super().__init__(f"Run {run_id} timed out after {attempts} polls")


class InterviewValidationError(InterviewError):
    """Raised when the session or document is missing or inconsistent."""

    kind = ErrorKind.VALIDATION
    retryable = False


class InterviewNotFoundError(InterviewValidationError):
    """Raised when the interview document does not exist."""

    def __init__(self, interview_id: str) -> None:
        self.interview_id = interview_id
        super().__init__(f"Interview {interview_id} not found")


class InvalidReplyError(InterviewValidationError):
    """Raised when a user reply is empty after sanitization."""
