"""Validation rules for the "task" entity kind."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping, Optional

from taskform.records.task import PRIORITY_CHOICES, STATUS_CHOICES
from taskform.rules.validation import field_rule


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@field_rule("task", "description")
def description_required(value: Any, data: Mapping[str, Any]) -> Optional[str]:
    if _blank(value):
        return "Description is required"
    return None


@field_rule("task", "dueDate")
def due_date_is_date(value: Any, data: Mapping[str, Any]) -> Optional[str]:
    """Optional; when given it is the value of a date input (YYYY-MM-DD)."""
    if _blank(value):
        return None
    try:
        date.fromisoformat(str(value).strip())
    except ValueError:
        return "Due date must be a valid date"
    return None


@field_rule("task", "reminder")
def reminder_is_datetime(value: Any, data: Mapping[str, Any]) -> Optional[str]:
    """
    Optional; when given it is the value of a datetime-local input
    (YYYY-MM-DDTHH:MM, seconds allowed). A bare date is rejected.
    """
    if _blank(value):
        return None
    text = str(value).strip()
    if "T" not in text and " " not in text:
        return "Reminder must be a valid date and time"
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return "Reminder must be a valid date and time"
    return None


@field_rule("task", "priority")
def priority_is_choice(value: Any, data: Mapping[str, Any]) -> Optional[str]:
    if value not in PRIORITY_CHOICES:
        return f"Priority must be one of: {', '.join(PRIORITY_CHOICES)}"
    return None


@field_rule("task", "status")
def status_is_choice(value: Any, data: Mapping[str, Any]) -> Optional[str]:
    if value not in STATUS_CHOICES:
        return f"Status must be one of: {', '.join(STATUS_CHOICES)}"
    return None
