"""Task records. Each record is defined in its own module."""

from .task import TaskDraft, TaskRecord

__all__ = ["TaskDraft", "TaskRecord"]
