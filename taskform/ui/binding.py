"""
Page binding — runs one TaskFormController operation against a flat view dict.

A Reflex state cannot hold the controller (it owns an httpx client), so each
browser event rebuilds one from the page's view vars, runs a single
operation and writes the result back. The controller's collaborators
(navigate, set_title, notifier) are recorded as effects; the Reflex state
turns them into events with to_rx_events().

View keys:
    task_id, mode, heading, submit_label     mode and labels
    description, due_date, reminder,          draft fields (TaskDraft attribute names)
    priority, status
    loaded_task                               dumped TaskRecord, {} when none
    form_errors                               {wire field name: message}
    loading, load_error                       spinner flag and load failure text
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import reflex as rx

from taskform.engine.api_client import Notifier, TaskApiClient
from taskform.engine.config import TaskFormConfig, get_config
from taskform.engine.context import AuthContext
from taskform.engine.errors import TaskFormError
from taskform.engine.logging import AsyncLogQueue
from taskform.forms.task_form import FormState, TaskFormController
from taskform.records.task import TaskDraft

logger = logging.getLogger("taskform.ui.binding")

Effect = Tuple[str, ...]
ApiFactory = Callable[[Notifier], TaskApiClient]

DRAFT_FIELDS = tuple(TaskDraft.model_fields)


def blank_view(task_id: str = "") -> Dict[str, Any]:
    """View vars for a freshly opened form, before anything is loaded."""
    update = bool(task_id)
    view: Dict[str, Any] = {
        "task_id": task_id,
        "mode": "update" if update else "add",
        "heading": "Edit Task" if update else "Add New Task",
        "submit_label": "Update Task" if update else "Add Task",
        "loaded_task": {},
        "form_errors": {},
        "loading": False,
        "load_error": "",
    }
    view.update(TaskDraft().model_dump())
    return view


def to_rx_events(effects: List[Effect]) -> List[Any]:
    events: List[Any] = []
    for kind, *args in effects:
        if kind == "redirect":
            events.append(rx.redirect(args[0]))
        elif kind == "title":
            events.append(rx.call_script(f"document.title = {json.dumps(args[0])}"))
        elif kind == "toast":
            level, message = args
            toast = rx.toast.error if level == "error" else rx.toast.success
            events.append(toast(message))
    return events


class TaskPageBinding:
    """
    One browser event's worth of form work.

    Usage:
        binding = TaskPageBinding(view, token)
        await binding.submit()
        view, effects = binding.view, binding.effects
    """

    def __init__(
        self,
        view: Dict[str, Any],
        token: str,
        *,
        config: Optional[TaskFormConfig] = None,
        api_factory: Optional[ApiFactory] = None,
        log_queue: Optional[AsyncLogQueue] = None,
    ):
        self.view = dict(view)
        self.effects: List[Effect] = []
        self._config = config or get_config()
        self._auth = AuthContext(token=token or "")
        self._api_factory = api_factory or self._default_api
        self._log_queue = log_queue

    def _default_api(self, notifier: Notifier) -> TaskApiClient:
        return TaskApiClient.from_config(self._config, notifier=notifier)

    def _notify(self, level: str, message: str) -> None:
        self.effects.append(("toast", level, message))

    def _controller(self, api: TaskApiClient) -> TaskFormController:
        return TaskFormController(
            api=api,
            auth=self._auth,
            navigate=lambda path: self.effects.append(("redirect", path)),
            task_id=self.view.get("task_id") or None,
            set_title=lambda title: self.effects.append(("title", title)),
            ui_config=self._config.ui,
            log_queue=self._log_queue,
        )

    def _resume(self, api: TaskApiClient) -> TaskFormController:
        controller = self._controller(api)
        controller.restore(
            {name: self.view[name] for name in DRAFT_FIELDS},
            loaded_task=self.view.get("loaded_task") or None,
            form_errors=self.view.get("form_errors"),
        )
        return controller

    def _sync(self, controller: TaskFormController) -> None:
        self.view.update(
            mode=controller.mode,
            heading=controller.heading,
            submit_label=controller.submit_label,
            loaded_task=controller.loaded_task.model_dump() if controller.loaded_task else {},
            form_errors=dict(controller.form_errors),
            loading=controller.loading,
        )
        self.view.update(controller.draft.model_dump())

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    async def load(self) -> None:
        """Mount the form; a failed load is shown in place of the form."""
        self.view["load_error"] = ""
        async with self._api_factory(self._notify) as api:
            controller = self._controller(api)
            try:
                await controller.mount()
            except TaskFormError as e:
                self.view["load_error"] = e.message
            self._sync(controller)

    async def change_field(self, field_name: str, value: Any) -> None:
        async with self._api_factory(self._notify) as api:
            controller = self._resume(api)
            controller.handle_field_change(field_name, value)
            self._sync(controller)

    async def reset(self) -> None:
        async with self._api_factory(self._notify) as api:
            controller = self._resume(api)
            controller.handle_reset()
            self._sync(controller)

    async def submit(self) -> bool:
        """True once the task was saved and a redirect home was queued."""
        async with self._api_factory(self._notify) as api:
            controller = self._resume(api)
            try:
                await controller.submit()
            except TaskFormError as e:
                # The API client has already queued an error toast
                logger.info(f"Task submit failed: {e.message}")
            self._sync(controller)
        saved = controller.state == FormState.NAVIGATED
        if saved:
            self.view["loaded_task"] = {}
        return saved

    async def cancel(self) -> None:
        async with self._api_factory(self._notify) as api:
            controller = self._resume(api)
            controller.cancel()
