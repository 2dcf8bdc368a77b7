"""
taskform UI — Reflex state and page for adding or editing a task.

Routes (registered in taskform/taskform.py):
    /tasks/new                 add mode
    /tasks/edit?task_id=<id>   update mode

The state only stores view vars. Each handler hands them to a
TaskPageBinding, which runs the controller, and copies the result back.
Handlers that wait on the backend yield once with loading=True first so the
spinner reaches the browser before the request starts.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import reflex as rx

from taskform.engine.logging import get_log_queue
from taskform.records.task import PRIORITY_CHOICES, STATUS_CHOICES
from taskform.ui.binding import TaskPageBinding, blank_view, to_rx_events

VIEW_VARS = tuple(blank_view())


class TaskFormState(rx.State):
    """
    Reactive store for one task form.

    Draft fields use the TaskDraft attribute names; form_errors is keyed by
    wire field name (dueDate).
    """

    auth_token: str = rx.LocalStorage(name="token")

    task_id: str = ""
    mode: str = "add"
    heading: str = "Add New Task"
    submit_label: str = "Add Task"

    description: str = ""
    due_date: str = ""
    reminder: str = ""
    priority: str = "medium"
    status: str = "pending"

    loaded_task: dict = {}
    form_errors: dict[str, str] = {}
    loading: bool = False
    load_error: str = ""

    def _view(self) -> Dict[str, Any]:
        view = {name: getattr(self, name) for name in VIEW_VARS}
        view["loaded_task"] = dict(self.loaded_task)
        view["form_errors"] = dict(self.form_errors)
        return view

    def _apply(self, view: Dict[str, Any]) -> None:
        for name in VIEW_VARS:
            setattr(self, name, view[name])

    def _binding(self) -> TaskPageBinding:
        return TaskPageBinding(self._view(), self.auth_token, log_queue=get_log_queue())

    async def on_load(self):
        """Mount the form for the current route; in update mode fetch the task."""
        view = blank_view(self.router.url.query_parameters.get("task_id", ""))
        view["loading"] = view["mode"] == "update"
        self._apply(view)
        yield

        binding = self._binding()
        await binding.load()
        self._apply(binding.view)
        yield to_rx_events(binding.effects)

    async def set_field(self, field_name: str, value: Any):
        binding = self._binding()
        await binding.change_field(field_name, value)
        self._apply(binding.view)
        return to_rx_events(binding.effects)

    async def handle_reset(self):
        binding = self._binding()
        await binding.reset()
        self._apply(binding.view)
        return to_rx_events(binding.effects)

    async def handle_submit(self, form_data: Optional[dict] = None):
        self.loading = True
        yield

        binding = self._binding()
        await binding.submit()
        self._apply(binding.view)
        yield to_rx_events(binding.effects)

    async def handle_cancel(self):
        binding = self._binding()
        await binding.cancel()
        return to_rx_events(binding.effects)


# ---------------------------------------------------------------------------
# Page components
# ---------------------------------------------------------------------------

def _field_error(field_name: str) -> rx.Component:
    return rx.cond(
        TaskFormState.form_errors.contains(field_name),
        rx.hstack(
            rx.icon("circle_alert", size=14, color="crimson"),
            rx.text(TaskFormState.form_errors[field_name], size="1", color="crimson"),
            spacing="2",
            margin_top="1",
        ),
        rx.fragment(),
    )


def _labelled(label: str, control: rx.Component, field_name: str) -> rx.Component:
    return rx.box(
        rx.text(label, size="2", weight="medium"),
        control,
        _field_error(field_name),
        width="100%",
    )


def _task_fields() -> rx.Component:
    return rx.vstack(
        _labelled(
            "Description",
            rx.text_area(
                placeholder="Write here..",
                name="description",
                value=TaskFormState.description,
                on_change=lambda value: TaskFormState.set_field("description", value),
                width="100%",
            ),
            "description",
        ),
        _labelled(
            "Due Date",
            rx.input(
                type="date",
                name="dueDate",
                value=TaskFormState.due_date,
                on_change=lambda value: TaskFormState.set_field("dueDate", value),
                width="100%",
            ),
            "dueDate",
        ),
        _labelled(
            "Reminder",
            rx.input(
                type="datetime-local",
                name="reminder",
                value=TaskFormState.reminder,
                on_change=lambda value: TaskFormState.set_field("reminder", value),
                width="100%",
            ),
            "reminder",
        ),
        _labelled(
            "Priority",
            rx.select(
                list(PRIORITY_CHOICES),
                name="priority",
                value=TaskFormState.priority,
                on_change=lambda value: TaskFormState.set_field("priority", value),
                width="100%",
            ),
            "priority",
        ),
        _labelled(
            "Status",
            rx.select(
                list(STATUS_CHOICES),
                name="status",
                value=TaskFormState.status,
                on_change=lambda value: TaskFormState.set_field("status", value),
                width="100%",
            ),
            "status",
        ),
        spacing="3",
        width="100%",
    )


def task_form_page() -> rx.Component:
    """Add/edit task page."""
    return rx.center(
        rx.card(
            rx.cond(
                TaskFormState.loading,
                rx.center(rx.spinner(size="3"), padding="6"),
                rx.cond(
                    TaskFormState.load_error != "",
                    rx.callout(
                        TaskFormState.load_error,
                        icon="triangle_alert",
                        color_scheme="red",
                    ),
                    rx.form(
                        rx.vstack(
                            rx.heading(TaskFormState.heading, size="5", text_align="center"),
                            _task_fields(),
                            rx.divider(),
                            rx.hstack(
                                rx.button(TaskFormState.submit_label, type="submit"),
                                rx.button(
                                    "Cancel",
                                    type="button",
                                    color_scheme="red",
                                    on_click=TaskFormState.handle_cancel,
                                ),
                                rx.button(
                                    "Reset",
                                    type="button",
                                    variant="outline",
                                    on_click=TaskFormState.handle_reset,
                                ),
                                spacing="3",
                            ),
                            spacing="4",
                            width="100%",
                        ),
                        on_submit=TaskFormState.handle_submit,
                        width="100%",
                    ),
                ),
            ),
            width="100%",
            max_width="1000px",
            padding="6",
        ),
        padding_y="8",
    )
