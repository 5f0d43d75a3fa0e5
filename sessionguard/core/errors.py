"""
Error Classification

Defines the error taxonomy shared by session validation and fund recovery.
Errors are split into recoverable (the user or the orchestrator may retry)
and unrecoverable (the input or the session state must change first).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorCategory(str, Enum):
    """Categories of errors for recovery decisions."""

    VALIDATION_BLOCKED = "validation_blocked"   # Operation illegal in current state
    TRANSFER_FAILED = "transfer_failed"         # A single sweep transfer failed
    BACKEND_UNAVAILABLE = "backend_unavailable"  # Whole call could not execute
    MALFORMED_INPUT = "malformed_input"         # Bad identifier, address or amount
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    PRECONDITION_FAILED = "precondition_failed"  # Upstream refused the action
    CONFLICT = "conflict"                       # Concurrent sweep rejected
    UNKNOWN = "unknown"


class OperationErrorKind(str, Enum):
    """Error codes surfaced to API clients."""

    SESSION_TERMINAL = "SESSION_TERMINAL"
    SESSION_NOT_PAUSED = "SESSION_NOT_PAUSED"
    ALREADY_PAUSED = "ALREADY_PAUSED"
    INSUFFICIENT_BALANCE_FOR_PAUSE = "INSUFFICIENT_BALANCE_FOR_PAUSE"
    INSUFFICIENT_BALANCE_FOR_RESUME = "INSUFFICIENT_BALANCE_FOR_RESUME"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    SWEEP_IN_PROGRESS = "SWEEP_IN_PROGRESS"
    TRANSFER_FAILED = "TRANSFER_FAILED"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    MALFORMED_INPUT = "MALFORMED_INPUT"


@dataclass
class OperationError:
    """Structured reason attached to a blocked or failed operation."""

    kind: OperationErrorKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass(frozen=True)
class ErrorAdvice:
    """User-facing explanation of an OperationError."""

    title: str
    message: str
    suggestion: str

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "message": self.message, "suggestion": self.suggestion}


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    recoverable: bool = True
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)


class SessionGuardError(Exception):
    """Base class for all errors raised by sessionguard."""

    category: ErrorCategory = ErrorCategory.UNKNOWN
    kind: OperationErrorKind = OperationErrorKind.PRECONDITION_FAILED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[ErrorContext] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.context = context or ErrorContext(
            category=self.category,
            recoverable=self.recoverable,
            details=self.details,
        )

    def to_operation_error(self) -> OperationError:
        return OperationError(kind=self.kind, message=self.message, details=self.details)


class RecoverableError(SessionGuardError):
    """
    Errors that can be retried.

    These are transient:
    - Upstream outages
    - Network failures
    - A single transfer that did not land
    """

    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(
            message,
            details=details,
            context=ErrorContext(
                category=self.category,
                recoverable=True,
                retry_after_seconds=retry_after,
                details=details or {},
            ),
        )
        self.retry_after = retry_after


class UnrecoverableError(SessionGuardError):
    """
    Errors that must not be retried as-is.

    The caller has to change the input, wait for state to change, or
    escalate to a human.
    """

    recoverable = False


class BackendUnavailableError(RecoverableError):
    """The upstream session manager or transfer backend could not be reached."""

    category = ErrorCategory.BACKEND_UNAVAILABLE
    kind = OperationErrorKind.BACKEND_UNAVAILABLE


class TransferFailedError(RecoverableError):
    """A sweep transfer for one wallet failed."""

    category = ErrorCategory.TRANSFER_FAILED
    kind = OperationErrorKind.TRANSFER_FAILED


class MalformedInputError(UnrecoverableError):
    """Invalid identifier, address or amount."""

    category = ErrorCategory.MALFORMED_INPUT
    kind = OperationErrorKind.MALFORMED_INPUT


class SessionNotFoundError(UnrecoverableError):
    category = ErrorCategory.NOT_FOUND
    kind = OperationErrorKind.SESSION_NOT_FOUND

    def __init__(self, session_id: str):
        super().__init__("Session not found", details={"sessionId": session_id})
        self.session_id = session_id


class UnauthorizedError(UnrecoverableError):
    category = ErrorCategory.UNAUTHORIZED
    kind = OperationErrorKind.UNAUTHORIZED


class PreconditionFailedError(UnrecoverableError):
    """Upstream refused the operation for the session's current state."""

    category = ErrorCategory.PRECONDITION_FAILED
    kind = OperationErrorKind.PRECONDITION_FAILED


class TransferRejectedError(UnrecoverableError):
    """The transfer backend rejected a sweep request as invalid."""

    category = ErrorCategory.TRANSFER_FAILED
    kind = OperationErrorKind.TRANSFER_FAILED


class ValidationBlockedError(UnrecoverableError):
    """
    An operation is not allowed in the session's current state.

    Carries the OperationError from the validator, so the reason (wrong
    state, insufficient balance, terminal session) survives the raise.
    """

    category = ErrorCategory.VALIDATION_BLOCKED

    def __init__(self, operation: str, error: OperationError):
        super().__init__(error.message, details=error.details)
        self.operation = operation
        self.error = error
        self.kind = error.kind

    def to_operation_error(self) -> OperationError:
        return self.error


class SweepConflictError(UnrecoverableError):
    """Another sweep for the same session or wallet is already running."""

    category = ErrorCategory.CONFLICT
    kind = OperationErrorKind.SWEEP_IN_PROGRESS


_ADVICE: Dict[OperationErrorKind, ErrorAdvice] = {
    OperationErrorKind.SESSION_TERMINAL: ErrorAdvice(
        title="Session has ended",
        message="This session is completed or stopped.",
        suggestion="Start a new session to continue trading.",
    ),
    OperationErrorKind.SESSION_NOT_PAUSED: ErrorAdvice(
        title="Cannot resume",
        message="Session is not paused.",
        suggestion="Check session status before resuming.",
    ),
    OperationErrorKind.ALREADY_PAUSED: ErrorAdvice(
        title="Session already paused",
        message="This session is already paused.",
        suggestion="Use the resume button to restart trading.",
    ),
    OperationErrorKind.INSUFFICIENT_BALANCE_FOR_PAUSE: ErrorAdvice(
        title="Cannot pause session",
        message="Your wallet balance is too low to pause safely.",
        suggestion="Consider stopping the session instead, as resuming would require more SOL than currently available.",
    ),
    OperationErrorKind.INSUFFICIENT_BALANCE_FOR_RESUME: ErrorAdvice(
        title="Cannot resume session",
        message="Your wallet needs more SOL to cover trading and network fees.",
        suggestion="Top up the session wallet, or stop the session to recover remaining funds.",
    ),
    OperationErrorKind.SESSION_NOT_FOUND: ErrorAdvice(
        title="Session not found",
        message="The requested session could not be found.",
        suggestion="Please check the session ID and try again.",
    ),
    OperationErrorKind.UNAUTHORIZED: ErrorAdvice(
        title="Not allowed",
        message="You are not authorized to control this session.",
        suggestion="Reconnect the wallet that owns the session.",
    ),
    OperationErrorKind.PRECONDITION_FAILED: ErrorAdvice(
        title="Operation rejected",
        message="The session manager rejected this operation for the session's current state.",
        suggestion="Refresh the session and try again.",
    ),
    OperationErrorKind.SWEEP_IN_PROGRESS: ErrorAdvice(
        title="Sweep already running",
        message="A recovery sweep for this session is already in progress.",
        suggestion="Wait for it to finish, then refresh the recovery status.",
    ),
    OperationErrorKind.TRANSFER_FAILED: ErrorAdvice(
        title="Transfer failed",
        message="Funds could not be moved from the ephemeral wallet to the vault.",
        suggestion="Run the recovery sweep again; failed wallets stay listed until they are swept.",
    ),
    OperationErrorKind.BACKEND_UNAVAILABLE: ErrorAdvice(
        title="Service unavailable",
        message="The session manager could not be reached.",
        suggestion="Please try again in a moment.",
    ),
    OperationErrorKind.MALFORMED_INPUT: ErrorAdvice(
        title="Invalid request",
        message="The request contained an invalid identifier or amount.",
        suggestion="Check the session ID and wallet addresses.",
    ),
}


def describe_error(error: OperationError) -> ErrorAdvice:
    """Map an OperationError to its title, message and suggestion."""
    advice = _ADVICE[error.kind]
    details = error.details
    if error.kind == OperationErrorKind.INSUFFICIENT_BALANCE_FOR_RESUME and "shortfall" in details:
        return ErrorAdvice(
            title=advice.title,
            message=f"Your wallet needs {details['shortfall']:.6f} more SOL to cover trading and network fees.",
            suggestion=(
                f"Current: {details['currentBalance']:.6f} SOL, "
                f"Required: {details['requiredBalance']:.6f} SOL"
            ),
        )
    if error.kind == OperationErrorKind.INSUFFICIENT_BALANCE_FOR_PAUSE and "currentBalance" in details:
        return ErrorAdvice(
            title=advice.title,
            message=f"Your wallet balance ({details['currentBalance']:.6f} SOL) is too low to pause safely.",
            suggestion=advice.suggestion,
        )
    if error.kind == OperationErrorKind.SESSION_NOT_PAUSED and "currentStatus" in details:
        return ErrorAdvice(
            title=advice.title,
            message=f"Session is currently {details['currentStatus']}, not paused.",
            suggestion=advice.suggestion,
        )
    return advice


def classify_error(error: Exception) -> ErrorContext:
    """
    Classify an exception and return its error context.

    Classification is by exception type only.
    """
    if isinstance(error, SessionGuardError):
        return error.context

    if isinstance(error, httpx.TimeoutException):
        return ErrorContext(
            category=ErrorCategory.BACKEND_UNAVAILABLE,
            recoverable=True,
            retry_after_seconds=10.0,
            suggested_action="Retry with longer timeout",
        )

    if isinstance(error, httpx.TransportError):
        return ErrorContext(
            category=ErrorCategory.BACKEND_UNAVAILABLE,
            recoverable=True,
            retry_after_seconds=5.0,
            suggested_action="Check network connectivity",
        )

    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        if status >= 500:
            return ErrorContext(
                category=ErrorCategory.BACKEND_UNAVAILABLE,
                recoverable=True,
                retry_after_seconds=5.0,
                details={"status": status},
            )
        return ErrorContext(
            category=ErrorCategory.PRECONDITION_FAILED,
            recoverable=False,
            details={"status": status},
        )

    if isinstance(error, (ValueError, TypeError)):
        return ErrorContext(category=ErrorCategory.MALFORMED_INPUT, recoverable=False)

    return ErrorContext(
        category=ErrorCategory.UNKNOWN,
        recoverable=True,
        suggested_action="Retry operation",
    )
