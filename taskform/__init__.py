"""
taskform — Add/edit task form controller over a REST task backend.

Package layout:
    engine/   errors, config, logging, auth context, API client
    records/  TaskDraft and TaskRecord models
    rules/    field validation rules
    forms/    TaskFormController
    ui/       Reflex page binding
"""

__version__ = "1.0.0"
__all__ = ["engine", "records", "rules", "forms", "ui"]
