"""
taskform Error Hierarchy — Structured exceptions for the task form.

Every error carries its context as keyword arguments and serializes to a
JSON-compatible dict so it can be written to the structured log.

Hierarchy:
    TaskFormError
    ├── TaskFormValidationError  — Field rule failures / unknown field
    ├── TaskFormRequestError     — Backend call failed (non-2xx or transport)
    ├── TaskFormStateError       — Operation not allowed in the current form state
    ├── TaskFormConfigError      — Invalid taskform.yaml
    └── TaskFormSessionError     — Missing or unusable auth token
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TaskFormError(Exception):
    """Base error for all taskform failures."""

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.execution_id: Optional[str] = context.get("execution_id")
        self.task_id: Optional[str] = context.get("task_id")
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to JSON-compatible dict for logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "execution_id": self.execution_id,
            "task_id": self.task_id,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k not in ("execution_id", "task_id")
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        if self.task_id:
            parts.append(f"task_id={self.task_id}")
        if self.execution_id:
            parts.append(f"execution_id={self.execution_id}")
        return " | ".join(parts)


class TaskFormValidationError(TaskFormError):
    """
    Draft failed field rules, or a field name is not part of the task.
    Includes field-level error details as a list of {field, err} dicts.
    """

    def __init__(self, message: str, **context: Any):
        self.validation_errors: List[Dict[str, str]] = context.get("validation_errors") or []
        self.field: Optional[str] = context.get("field")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        d["field"] = self.field
        return d


class TaskFormRequestError(TaskFormError):
    """A load/create/update call failed (non-2xx status or transport error)."""

    def __init__(self, message: str, **context: Any):
        self.method: Optional[str] = context.get("method")
        self.url: Optional[str] = context.get("url")
        self.status_code: Optional[int] = context.get("status_code")
        self.response_body: Optional[Any] = context.get("response_body")
        super().__init__(message, **context)

    @property
    def is_transport_error(self) -> bool:
        return self.status_code is None

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["method"] = self.method
        d["url"] = self.url
        d["status_code"] = self.status_code
        return d


class TaskFormStateError(TaskFormError):
    """Operation attempted while the form is in a state that does not allow it."""

    def __init__(self, message: str, **context: Any):
        self.state: Optional[str] = context.get("state")
        self.operation: Optional[str] = context.get("operation")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["state"] = self.state
        d["operation"] = self.operation
        return d


class TaskFormConfigError(TaskFormError):
    """Configuration error — invalid taskform.yaml."""
    pass


class TaskFormSessionError(TaskFormError):
    """Auth token missing or unusable."""
    pass
