"""Task engine exceptions and their classification into user-facing responses."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class TaskEngineError(Exception):
    """Base class for errors raised by the task tracking engine."""


class MalformedCompletionRecordError(TaskEngineError, ValueError):
    """A persisted completion history blob could not be interpreted.

    Recoverable: callers treat the history as empty and decide whether to
    surface a data-repair warning.
    """

    def __init__(self, raw: Any, reason: str) -> None:
        self.raw = raw
        self.reason = reason
        super().__init__(f"Malformed completion record ({type(raw).__name__}): {reason}")


class InvalidFrequencyError(TaskEngineError, ValueError):
    """An operation was requested that is undefined for the task's repeat frequency."""

    def __init__(self, frequency: str, operation: str) -> None:
        self.frequency = frequency
        self.operation = operation
        super().__init__(f"Operation '{operation}' is not defined for repeat frequency '{frequency}'")


class InvalidTransitionError(TaskEngineError):
    """The requested lifecycle action is not legal from the task's current state."""

    def __init__(self, *, task_id: str | None, current_status: str, action: str, reason: str = "") -> None:
        self.task_id = task_id
        self.current_status = current_status
        self.action = action
        self.reason = reason
        msg = f"Cannot {action}: task {task_id} is in {current_status} state"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class TaskPermissionError(TaskEngineError, PermissionError):
    """The acting user is not allowed to request this action on the task."""

    def __init__(self, *, task_id: str | None, actor_id: str | None, action: str) -> None:
        self.task_id = task_id
        self.actor_id = actor_id
        self.action = action
        super().__init__(f"User {actor_id} is not permitted to {action} task {task_id}")


class InvariantViolationError(TaskEngineError):
    """Stored counters disagree with the completion history."""

    def __init__(self, *, task_id: str | None, violations: list[str]) -> None:
        self.task_id = task_id
        self.violations = violations
        super().__init__(f"Task {task_id} violates invariants: {'; '.join(violations)}")


class ErrorSeverity(Enum):
    """How urgently an operator should look at the failure."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorCode:
    """Stable codes clients switch on for localized messages."""

    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_MALFORMED_RECORD = "ERR_MALFORMED_RECORD"
    ERR_INVALID_FREQUENCY = "ERR_INVALID_FREQUENCY"
    ERR_INVARIANT_VIOLATION = "ERR_INVARIANT_VIOLATION"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Error body returned by the HTTP surface."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    context: dict[str, Any] = {}


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Map a task-engine failure to its code, message and recovery hint.

    Args:
        exception: The exception raised while handling a task request

    Returns:
        ErrorResponse with code, message, suggestion, severity and the context
        a localized message needs
    """
    if isinstance(exception, InvalidTransitionError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            message="This action cannot be performed in the task's current state.",
            suggestion="Refresh the task list and check its status before trying again.",
            severity=ErrorSeverity.LOW,
            context={
                "task_id": exception.task_id,
                "current_status": exception.current_status,
                "action": exception.action,
                "reason": exception.reason,
            },
        )

    if isinstance(exception, PermissionError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            message="Only the task's creator or assignee may do that.",
            suggestion="Ask your partner to make this change.",
            severity=ErrorSeverity.MEDIUM,
            context={"action": getattr(exception, "action", None)},
        )

    if isinstance(exception, KeyError):
        return ErrorResponse(
            code=ErrorCode.ERR_TASK_NOT_FOUND,
            message="I couldn't find that task.",
            suggestion="It may have been deleted. Reload the task board.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, MalformedCompletionRecordError):
        return ErrorResponse(
            code=ErrorCode.ERR_MALFORMED_RECORD,
            message="The task's completion history could not be read.",
            suggestion="Run a repair on the task to rebuild its counters.",
            severity=ErrorSeverity.MEDIUM,
            context={"reason": exception.reason},
        )

    if isinstance(exception, InvalidFrequencyError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_FREQUENCY,
            message="An internal error occurred while computing task progress.",
            suggestion="Please report this problem.",
            severity=ErrorSeverity.HIGH,
            context={"frequency": exception.frequency, "operation": exception.operation},
        )

    if isinstance(exception, InvariantViolationError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVARIANT_VIOLATION,
            message="The task's progress counters are inconsistent.",
            suggestion="Run a repair on the task to rebuild its counters.",
            severity=ErrorSeverity.HIGH,
            context={"task_id": exception.task_id, "violations": exception.violations},
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="Something went wrong while updating the task.",
        suggestion="Reload the task board and try again.",
        severity=ErrorSeverity.MEDIUM,
    )
