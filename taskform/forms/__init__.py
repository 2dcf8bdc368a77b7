"""Form controllers."""

from taskform.forms.task_form import FormState, TaskFormController

__all__ = ["FormState", "TaskFormController"]
