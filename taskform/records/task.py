"""Task records — the editable draft and the server-side task it mirrors."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

PRIORITY_CHOICES = ("low", "medium", "high")
STATUS_CHOICES = ("pending", "in-progress", "completed")

DEFAULT_PRIORITY = "medium"
DEFAULT_STATUS = "pending"


class TaskDraft(BaseModel):
    """
    Locally editable copy of a task, owned by the form while it is open.

    Assignment is not validated; field rules run only at submit time.
    Wire names are camelCase (dueDate), attribute names snake_case.
    """

    model_config = ConfigDict(populate_by_name=True)

    description: str = Field(default="", description="What needs doing")
    due_date: str = Field(default="", alias="dueDate", description="ISO date or empty")
    reminder: str = Field(default="", description="ISO datetime or empty")
    priority: str = Field(
        default=DEFAULT_PRIORITY,
        json_schema_extra={"choices": list(PRIORITY_CHOICES)},
    )
    status: str = Field(
        default=DEFAULT_STATUS,
        json_schema_extra={"choices": list(STATUS_CHOICES)},
    )

    @classmethod
    def wire_names(cls) -> Dict[str, str]:
        """Map wire name → attribute name, in field order."""
        return {
            (info.alias or name): name
            for name, info in cls.model_fields.items()
        }

    @classmethod
    def resolve_field(cls, field_name: str) -> Optional[str]:
        """Return the attribute name for a wire or attribute name, else None."""
        names = cls.wire_names()
        if field_name in names:
            return names[field_name]
        if field_name in names.values():
            return field_name
        return None

    def to_payload(self) -> Dict[str, Any]:
        """Request body for create/update, camelCase keys in field order."""
        return self.model_dump(by_alias=True)

    def __getitem__(self, field_name: str) -> Any:
        attr = self.resolve_field(field_name)
        if attr is None:
            raise KeyError(field_name)
        return getattr(self, attr)


class TaskRecord(BaseModel):
    """
    Server-confirmed task as returned by GET /tasks/{id}.

    Optional fields may be absent; unknown server fields are ignored.
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", frozen=True, coerce_numbers_to_str=True,
    )

    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    description: Optional[str] = ""
    due_date: Optional[str] = Field(default=None, validation_alias=AliasChoices("dueDate", "due_date"))
    reminder: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None

    def to_draft(self) -> TaskDraft:
        """Fresh draft from this snapshot; absent optional fields get their defaults."""
        return TaskDraft(
            description=self.description or "",
            due_date=self.due_date or "",
            reminder=self.reminder or "",
            priority=self.priority or DEFAULT_PRIORITY,
            status=self.status or DEFAULT_STATUS,
        )

    @classmethod
    def from_response(cls, body: Any) -> "TaskRecord":
        """Parse the {"task": {...}} load response envelope."""
        if isinstance(body, dict) and isinstance(body.get("task"), dict):
            return cls.model_validate(body["task"])
        return cls.model_validate(body)
