"""
TaskFormController — state, validation and submission for the add/edit task form.

Lifecycle (one instance per mounted form):

    INIT --(add)--------> READY
    INIT --(update)-----> LOADING --ok--> READY
                                  --fail--> ERROR
    READY --submit(valid)--> SUBMITTING --ok--> NAVIGATED
                                        --fail--> READY
    READY --cancel--> NAVIGATED

Collaborators are passed in explicitly: the API client (fetch), the auth
context, a navigate(path) callable and an optional set_title(title) callable.
Views observe the controller through subscribe() instead of polling it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Callable, Dict, List, Optional

from taskform.engine.api_client import TaskApiClient
from taskform.engine.config import UIConfig
from taskform.engine.context import AuthContext
from taskform.engine.errors import TaskFormError, TaskFormStateError, TaskFormValidationError
from taskform.engine.logging import AsyncLogQueue, log_form_event
from taskform.records.task import TaskDraft, TaskRecord
from taskform.rules import FieldError, validate_many_fields

logger = logging.getLogger("taskform.forms.task_form")

Observer = Callable[[str, "TaskFormController"], Any]
Validator = Callable[[str, Any], List[FieldError]]

ENTITY_KIND = "task"


class FormState(str, enum.Enum):
    INIT = "init"
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    ERROR = "error"
    NAVIGATED = "navigated"


class TaskFormController:
    """
    Owns the TaskDraft while the form is open.

    Mode is "update" when a task_id is given, "add" otherwise. In update mode
    loaded_task holds the last server snapshot and is the reset baseline.
    """

    def __init__(
        self,
        api: TaskApiClient,
        auth: AuthContext,
        navigate: Callable[[str], Any],
        task_id: Optional[str] = None,
        *,
        set_title: Optional[Callable[[str], Any]] = None,
        validator: Optional[Validator] = None,
        ui_config: Optional[UIConfig] = None,
        log_queue: Optional[AsyncLogQueue] = None,
    ):
        self._api = api
        self._auth = auth
        self._navigate = navigate
        self._set_title = set_title
        self._validator = validator or validate_many_fields
        self._ui = ui_config or UIConfig()
        self._log_queue = log_queue

        self.task_id: Optional[str] = str(task_id) if task_id else None
        self.draft: TaskDraft = TaskDraft()
        self.loaded_task: Optional[TaskRecord] = None
        self.form_errors: Dict[str, str] = {}
        self.loading: bool = False
        self.state: FormState = FormState.INIT
        self.title: str = ""

        self._observers: List[Observer] = []
        self._closed = False
        self._load_task: Optional[asyncio.Task] = None

    # -----------------------------------------------------------------------
    # Mode-derived properties
    # -----------------------------------------------------------------------

    @property
    def mode(self) -> str:
        return "update" if self.task_id else "add"

    @property
    def is_update(self) -> bool:
        return self.mode == "update"

    @property
    def heading(self) -> str:
        return "Edit Task" if self.is_update else "Add New Task"

    @property
    def submit_label(self) -> str:
        return "Update Task" if self.is_update else "Add Task"

    @property
    def closed(self) -> bool:
        return self._closed

    def field_error(self, field_name: str) -> Optional[str]:
        return self.form_errors.get(field_name)

    # -----------------------------------------------------------------------
    # Observers
    # -----------------------------------------------------------------------

    def subscribe(self, callback: Observer) -> Callable[[], None]:
        """Register a change callback. Returns a function that unregisters it."""
        self._observers.append(callback)

        def unsubscribe() -> None:
            if callback in self._observers:
                self._observers.remove(callback)

        return unsubscribe

    def _emit(self, event: str) -> None:
        for callback in list(self._observers):
            callback(event, self)

    def _set_state(self, state: FormState, event: str) -> None:
        self.state = state
        self._emit(event)

    def _require_state(self, operation: str, *allowed: FormState) -> None:
        if self.state not in allowed:
            raise TaskFormStateError(
                f"Cannot {operation} while form is {self.state.value}",
                state=self.state.value,
                operation=operation,
                task_id=self.task_id,
            )

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def initialize(self) -> None:
        """Set the window title for the mode; add mode is immediately READY."""
        self._require_state("initialize", FormState.INIT)
        self.title = self._ui.edit_title if self.is_update else self._ui.add_title
        if self._set_title is not None:
            self._set_title(self.title)
        self._record("form_initialized")
        if self.is_update:
            self._emit("initialized")
        else:
            self._set_state(FormState.READY, "initialized")

    async def mount(self) -> Optional[TaskRecord]:
        """initialize(), then in update mode run load_existing() as a cancellable task."""
        self.initialize()
        if not self.is_update:
            return None

        self._load_task = asyncio.ensure_future(self.load_existing())
        try:
            return await self._load_task
        except asyncio.CancelledError:
            if self._closed:
                return None
            raise

    def restore(
        self,
        draft: Dict[str, Any],
        loaded_task: Optional[Dict[str, Any]] = None,
        form_errors: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Rebuild a READY form from saved view state without any request.

        Used by views that keep the draft in their own store between events.
        """
        self._require_state("restore", FormState.INIT)
        self.title = self._ui.edit_title if self.is_update else self._ui.add_title
        self.draft = TaskDraft.model_validate(draft)
        self.loaded_task = TaskRecord.model_validate(loaded_task) if loaded_task else None
        self.form_errors = dict(form_errors or {})
        self._set_state(FormState.READY, "restored")

    def teardown(self) -> None:
        """Form unmounted: cancel a pending load and ignore anything still in flight."""
        if self._closed:
            return
        self._closed = True
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._record("form_torn_down")
        self._emit("torn_down")
        self._observers.clear()

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    async def load_existing(self) -> Optional[TaskRecord]:
        """
        Fetch the task being edited and initialize the draft from it.

        Returns the loaded record, or None if the form was torn down before
        the response arrived. Failures leave the form in ERROR and propagate;
        there is no retry here.
        """
        if not self.is_update:
            raise TaskFormStateError(
                "load_existing is only valid in update mode",
                state=self.state.value,
                operation="load",
            )
        self._require_state("load", FormState.INIT, FormState.ERROR)

        self.loading = True
        self._set_state(FormState.LOADING, "loading")
        try:
            record = await self._api.load_task(self.task_id, self._auth)
        except TaskFormError as e:
            if not self._closed:
                self._set_state(FormState.ERROR, "load_failed")
            self._record("task_load_failed", error=str(e))
            raise
        finally:
            self.loading = False

        if self._closed:
            logger.info(f"Discarding load of task {self.task_id}: form already torn down")
            return None

        self.loaded_task = record
        self.draft = record.to_draft()
        self._record("task_loaded")
        self._set_state(FormState.READY, "loaded")
        return record

    def handle_field_change(self, field_name: str, value: Any) -> None:
        """Set one draft field. No validation until submit."""
        self._require_state("change field", FormState.READY)
        attr = TaskDraft.resolve_field(field_name)
        if attr is None:
            raise TaskFormValidationError(
                f"Unknown task field: {field_name}",
                field=field_name,
                task_id=self.task_id,
            )
        setattr(self.draft, attr, value)
        self._emit("field_changed")

    def handle_reset(self) -> None:
        """Restore the draft from loaded_task; in add mode clear it to defaults."""
        self._require_state("reset", FormState.READY)
        if self.loaded_task is not None:
            self.draft = self.loaded_task.to_draft()
        else:
            self.draft = TaskDraft()
        self._emit("reset")

    def validate(self, draft: Optional[TaskDraft] = None) -> List[FieldError]:
        """Run the task rules. Pure; an empty list means valid."""
        target = draft if draft is not None else self.draft
        return self._validator(ENTITY_KIND, target)

    async def submit(self) -> bool:
        """
        Validate, then create (add) or update the task and navigate home.

        Returns False when validation fails; form_errors is then replaced with
        one message per failing field and no request is sent. Request failures
        return the form to READY and propagate.
        """
        self._require_state("submit", FormState.READY)

        errors = self.validate()
        self.form_errors = {}
        if errors:
            self.form_errors = {e.field: e.err for e in errors}
            self._record("validation_failed", fields=list(self.form_errors))
            self._emit("validation_failed")
            return False

        payload = self.draft.to_payload()
        self.loading = True
        self._set_state(FormState.SUBMITTING, "submitting")
        try:
            if self.is_update:
                await self._api.update_task(self.task_id, payload, self._auth)
            else:
                await self._api.create_task(payload, self._auth)
        except TaskFormError as e:
            if not self._closed:
                self._set_state(FormState.READY, "submit_failed")
            self._record("task_submit_failed", error=str(e))
            raise
        finally:
            self.loading = False

        self._record("task_submitted")
        if self._closed:
            logger.info(f"Task {self.mode} finished after teardown; not navigating")
            return True
        self._go_home("submitted")
        return True

    def cancel(self) -> None:
        """Leave the form without saving; a pending load is abandoned."""
        self._require_state(
            "cancel", FormState.INIT, FormState.LOADING, FormState.READY, FormState.ERROR,
        )
        self._record("form_cancelled")
        self._go_home("cancelled")
        self.teardown()

    def _go_home(self, event: str) -> None:
        self._navigate(self._ui.home_route)
        self._set_state(FormState.NAVIGATED, event)

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------

    def _record(
        self,
        event: str,
        fields: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> None:
        if error:
            logger.warning(f"{event} ({self.mode}, task={self.task_id}): {error}")
        else:
            logger.debug(f"{event} ({self.mode}, task={self.task_id})")

        if self._log_queue is None:
            return
        self._log_queue.push(log_form_event(
            event=event,
            mode=self.mode,
            state=self.state.value,
            task_id=self.task_id,
            execution_id=self._auth.execution_id,
            user_id=self._auth.user_id,
            fields=fields,
            error=error,
        ))
