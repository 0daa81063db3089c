"""Structured error types raised by Projitive operations."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class ProjitiveError(RuntimeError):
    """Exception carrying a stable error code and structured details."""

    default_code = "PROJITIVE_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class TaskError(ProjitiveError):
    default_code = "TASK_ERROR"


class InvalidTaskIdError(TaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Invalid task ID: {task_id}", "INVALID_TASK_ID", {"task_id": task_id})


class TaskNotFoundError(TaskError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", "TASK_NOT_FOUND", {"task_id": task_id})


class InvalidTransitionError(TaskError):
    """Raised when a write path requests a status change the state machine forbids."""

    def __init__(self, from_status: str, to_status: str, task_id: Optional[str] = None) -> None:
        details: Dict[str, Any] = {"from": from_status, "to": to_status}
        if task_id:
            details["task_id"] = task_id
        super().__init__(
            f"Invalid status transition from {from_status} to {to_status}",
            "INVALID_TRANSITION",
            details,
        )
        self.from_status = from_status
        self.to_status = to_status


class InvalidTaskUpdateError(TaskError):
    """Raised when a task update payload carries an out-of-vocabulary value."""

    def __init__(self, field_name: str, value: object, allowed: Optional[str] = None) -> None:
        message = f"Invalid value for {field_name}: {value}"
        if allowed:
            message += f" (expected {allowed})"
        super().__init__(message, "INVALID_TASK_UPDATE", {"field": field_name, "value": str(value)})


class ProjectError(ProjitiveError):
    default_code = "PROJECT_ERROR"


class GovernanceRootNotFoundError(ProjectError):
    def __init__(self, project_path: str) -> None:
        super().__init__(
            f"Governance root not found for project: {project_path}",
            "GOVERNANCE_ROOT_NOT_FOUND",
            {"project_path": project_path},
        )


class ProjectPathError(ProjectError):
    """Raised for unusable project paths and ambiguous governance roots."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message, "PROJECT_PATH_INVALID", {"path": path} if path else None)


class ConfigurationError(ProjitiveError):
    def __init__(self, message: str, variable: Optional[str] = None) -> None:
        super().__init__(message, "CONFIGURATION_ERROR", {"variable": variable} if variable else None)
