"""Domain exceptions for donorflow.

Business rule violations, independent of infrastructure. The presentation
layer maps error_code to HTTP status in core.exception_handlers.
"""

from typing import Any


class DonorflowException(Exception):
    """Base exception for all donorflow errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, resource_id).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ValidationException(DonorflowException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(DonorflowException):
    """Raised when the bearer token is missing, invalid or expired."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationException(DonorflowException):
    """Raised when the actor lacks permission for the operation."""

    def __init__(
        self,
        resource: str | None = None,
        action: str | None = None,
        message: str = "Permission denied",
    ) -> None:
        """Initialize with optional resource, action, and message.

        Args:
            resource: Optional resource type (e.g. 'task', 'workflow').
            action: Optional action that was attempted (e.g. 'complete', 'reset').
            message: Human-readable message; default used when resource/action omitted.
        """
        if resource and action:
            message = f"Permission denied: {action} on {resource}"
        details: dict[str, Any] = {}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "PERMISSION_DENIED", details)


class ResourceNotFoundException(DonorflowException):
    """Raised when a requested task, workflow or record does not exist."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidTaskTransitionException(DonorflowException):
    """Raised when a status change is not allowed from the task's current status."""

    def __init__(self, task_id: str, current: str, target: str, reason: str | None = None) -> None:
        message = f"Task {task_id} cannot move from {current} to {target}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            "INVALID_TASK_TRANSITION",
            {"task_id": task_id, "current_status": current, "target_status": target},
        )


class ConcurrentModificationException(DonorflowException):
    """Raised when a guarded write lost to a concurrent writer after all retries."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} {resource_id} was modified concurrently; retry",
            "CONCURRENT_MODIFICATION",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class WorkflowInstantiationException(DonorflowException):
    """Raised when a workflow's task set could not be written; nothing was persisted."""

    def __init__(self, workflow_id: str, reason: str) -> None:
        super().__init__(
            f"Failed to instantiate workflow {workflow_id}: {reason}",
            "WORKFLOW_INSTANTIATION_FAILED",
            {"workflow_id": workflow_id, "reason": reason},
        )


class TemplateDefinitionException(DonorflowException):
    """Raised when a workflow template is malformed (duplicate keys, unknown deps, cycles)."""

    def __init__(self, template_name: str, reason: str) -> None:
        super().__init__(
            f"Invalid workflow template '{template_name}': {reason}",
            "TEMPLATE_DEFINITION_ERROR",
            {"template_name": template_name, "reason": reason},
        )


class TaskRecordInvalidException(DonorflowException):
    """Raised when a stored task record is missing required fields or has unknown values."""

    def __init__(self, task_id: str, reason: str) -> None:
        super().__init__(
            f"Stored task {task_id} is invalid: {reason}",
            "TASK_RECORD_INVALID",
            {"task_id": task_id, "reason": reason},
        )


class PersistenceException(DonorflowException):
    """Raised when the task store is unavailable or a write failed outright."""

    def __init__(self, message: str = "Task store unavailable", operation: str | None = None) -> None:
        details = {"operation": operation} if operation else {}
        super().__init__(message, "PERSISTENCE_ERROR", details)
