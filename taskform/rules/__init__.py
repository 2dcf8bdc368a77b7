"""Field validation rules. Importing this package registers the task rules."""

from taskform.rules import task_rules  # noqa: F401
from taskform.rules.validation import FieldError, field_rule, validate_many_fields

__all__ = ["FieldError", "field_rule", "validate_many_fields"]
