"""
taskform UI — Reflex page binding for the task form.

Public API:
    Page:     task_form_page
    State:    TaskFormState
    Binding:  TaskPageBinding (controller work behind each page event)
"""

from taskform.ui.binding import TaskPageBinding, blank_view, to_rx_events
from taskform.ui.task_page import TaskFormState, task_form_page

__all__ = ["TaskFormState", "task_form_page", "TaskPageBinding", "blank_view", "to_rx_events"]
