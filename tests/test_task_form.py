"""Unit tests for taskform.forms.task_form — TaskFormController lifecycle and operations."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from taskform.engine.api_client import SESSION_ERROR_MESSAGE, TaskApiClient
from taskform.engine.config import UIConfig
from taskform.engine.context import AuthContext
from taskform.engine.errors import (
    TaskFormRequestError,
    TaskFormSessionError,
    TaskFormStateError,
    TaskFormValidationError,
)
from taskform.engine.logging import AsyncLogQueue, FileLogger
from taskform.forms.task_form import FormState, TaskFormController
from taskform.records.task import TaskDraft, TaskRecord
from taskform.rules import FieldError

SEEDED = {"_id": "42", "description": "Old", "priority": "low", "status": "pending"}


@pytest.fixture
def seeded(backend):
    backend.tasks["42"] = dict(SEEDED)
    return backend


class GatedBackend:
    """Holds GET responses until release() so a test can act mid-load."""

    def __init__(self, task):
        self.task = task
        self.gate = asyncio.Event()
        self.started = asyncio.Event()

    async def handler(self, request):
        self.started.set()
        await self.gate.wait()
        return httpx.Response(200, json={"task": self.task, "msg": "Task found successfully"})

    def release(self):
        self.gate.set()


# ---------------------------------------------------------------------------
# Add mode
# ---------------------------------------------------------------------------

class TestAddMode:
    def test_initialize(self, make_form, set_title):
        form = make_form()
        form.initialize()
        assert form.mode == "add"
        assert form.state == FormState.READY
        assert form.heading == "Add New Task"
        assert form.submit_label == "Add Task"
        assert set_title.calls == [("Add Task",)]
        assert form.draft == TaskDraft()

    @pytest.mark.asyncio
    async def test_mount_sends_no_request(self, make_form, backend):
        form = make_form()
        assert await form.mount() is None
        assert form.state == FormState.READY
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_submit_creates_and_navigates_home(self, make_form, backend, navigate, notifier):
        form = make_form()
        form.initialize()
        form.handle_field_change("description", "Buy milk")
        form.handle_field_change("priority", "high")

        assert await form.submit() is True

        request = backend.last_request
        assert request.method == "POST"
        assert request.url.path == "/api/tasks"
        assert backend.body_of(request) == {
            "description": "Buy milk",
            "dueDate": "",
            "reminder": "",
            "priority": "high",
            "status": "pending",
        }
        assert navigate.calls == [("/",)]
        assert notifier.calls == [("success", "Task created successfully")]
        assert form.state == FormState.NAVIGATED
        assert form.loading is False

    @pytest.mark.asyncio
    async def test_validation_failure_sends_nothing(self, make_form, backend, navigate):
        form = make_form()
        form.initialize()

        assert await form.submit() is False

        assert form.form_errors == {"description": "Description is required"}
        assert form.field_error("description") == "Description is required"
        assert form.field_error("priority") is None
        assert form.state == FormState.READY
        assert backend.requests == []
        assert not navigate.called

    @pytest.mark.asyncio
    async def test_errors_replaced_on_next_submit(self, make_form, backend):
        form = make_form()
        form.initialize()
        form.handle_field_change("dueDate", "not a date")
        await form.submit()
        assert set(form.form_errors) == {"description", "dueDate"}

        form.handle_field_change("description", "x")
        form.handle_field_change("dueDate", "2025-06-30")
        assert await form.submit() is True
        assert form.form_errors == {}

    @pytest.mark.asyncio
    async def test_reset_clears_to_defaults(self, make_form):
        form = make_form()
        form.initialize()
        form.handle_field_change("description", "typed")
        form.handle_field_change("status", "completed")
        form.handle_reset()
        assert form.draft == TaskDraft()

    @pytest.mark.asyncio
    async def test_request_failure_returns_to_ready(self, make_form, backend, navigate, notifier):
        backend.respond("POST", "/tasks", (500, {"msg": "Server error"}))
        form = make_form()
        form.initialize()
        form.handle_field_change("description", "Buy milk")

        with pytest.raises(TaskFormRequestError):
            await form.submit()

        assert form.state == FormState.READY
        assert form.loading is False
        assert form.draft.description == "Buy milk"
        assert notifier.calls == [("error", "Server error")]
        assert not navigate.called

        # the user can retry by submitting again
        backend.respond("POST", "/tasks", (200, {"msg": "Task created successfully"}))
        assert await form.submit() is True


# ---------------------------------------------------------------------------
# Update mode
# ---------------------------------------------------------------------------

class TestUpdateMode:
    @pytest.mark.asyncio
    async def test_mount_loads_task(self, make_form, seeded, set_title, notifier):
        form = make_form("42")
        record = await form.mount()

        assert form.mode == "update"
        assert form.heading == "Edit Task"
        assert form.submit_label == "Update Task"
        assert set_title.calls == [("Edit Task",)]
        assert record.id == "42"
        assert form.loaded_task == record
        assert form.draft.to_payload() == {
            "description": "Old",
            "dueDate": "",
            "reminder": "",
            "priority": "low",
            "status": "pending",
        }
        assert form.state == FormState.READY
        assert form.loading is False
        assert notifier.calls == []

        request = seeded.last_request
        assert request.method == "GET"
        assert request.url.path == "/api/tasks/42"
        assert request.headers["Authorization"] == "tok_abc123"

    @pytest.mark.asyncio
    async def test_numeric_task_id(self, make_form, seeded):
        form = make_form(42)
        await form.mount()
        assert form.task_id == "42"

    @pytest.mark.asyncio
    async def test_load_defaults_missing_priority_and_status(self, make_form, backend):
        backend.tasks["7"] = {"_id": "7", "description": "Bare"}
        form = make_form("7")
        await form.mount()
        assert form.draft.priority == "medium"
        assert form.draft.status == "pending"

    @pytest.mark.asyncio
    async def test_edit_and_submit_puts_whole_draft(self, make_form, seeded, navigate, notifier):
        form = make_form("42")
        await form.mount()
        form.handle_field_change("status", "completed")

        assert await form.submit() is True

        request = seeded.last_request
        assert request.method == "PUT"
        assert request.url.path == "/api/tasks/42"
        assert seeded.body_of(request) == {
            "description": "Old",
            "dueDate": "",
            "reminder": "",
            "priority": "low",
            "status": "completed",
        }
        assert navigate.calls == [("/",)]
        assert notifier.calls == [("success", "Task updated successfully")]

    @pytest.mark.asyncio
    async def test_reset_restores_loaded_task(self, make_form, seeded):
        form = make_form("42")
        await form.mount()
        form.handle_field_change("description", "Changed")
        form.handle_field_change("priority", "high")

        form.handle_reset()
        assert form.draft.description == "Old"
        assert form.draft.priority == "low"

        form.handle_reset()
        assert form.draft == form.loaded_task.to_draft()

    @pytest.mark.asyncio
    async def test_edits_do_not_touch_loaded_task(self, make_form, seeded):
        form = make_form("42")
        await form.mount()
        form.handle_field_change("description", "Changed")
        assert form.loaded_task.description == "Old"

    @pytest.mark.asyncio
    async def test_load_failure_enters_error(self, make_form, backend, notifier):
        form = make_form("404")
        events = []
        form.subscribe(lambda event, f: events.append(event))

        with pytest.raises(TaskFormRequestError) as exc_info:
            await form.mount()

        assert exc_info.value.status_code == 404
        assert form.state == FormState.ERROR
        assert form.loading is False
        assert form.loaded_task is None
        assert events[-1] == "load_failed"
        assert notifier.calls == [("error", "Task not found")]

    @pytest.mark.asyncio
    async def test_load_can_be_retried_from_error(self, make_form, backend):
        backend.respond("GET", "/tasks/42", (503, {"msg": "down"}), (200, {"task": SEEDED}))
        form = make_form("42")
        with pytest.raises(TaskFormRequestError):
            await form.mount()

        record = await form.load_existing()
        assert record.description == "Old"
        assert form.state == FormState.READY


class TestMissingToken:
    @pytest.mark.asyncio
    async def test_load_without_token(self, make_form, seeded, notifier):
        form = make_form("42", auth=AuthContext(token=""))

        with pytest.raises(TaskFormSessionError):
            await form.mount()

        assert form.state == FormState.ERROR
        assert form.loading is False
        assert notifier.calls == [("error", SESSION_ERROR_MESSAGE)]
        assert seeded.requests == []

    @pytest.mark.asyncio
    async def test_submit_without_token(self, make_form, backend, navigate, notifier):
        form = make_form(auth=AuthContext(token=""))
        form.initialize()
        form.handle_field_change("description", "Buy milk")

        with pytest.raises(TaskFormSessionError):
            await form.submit()

        assert form.state == FormState.READY
        assert notifier.calls == [("error", SESSION_ERROR_MESSAGE)]
        assert backend.requests == []
        assert not navigate.called


# ---------------------------------------------------------------------------
# State rules
# ---------------------------------------------------------------------------

class TestStateRules:
    @pytest.mark.asyncio
    async def test_load_in_add_mode_rejected(self, make_form, backend):
        form = make_form()
        with pytest.raises(TaskFormStateError):
            await form.load_existing()
        assert backend.requests == []

    def test_initialize_twice_rejected(self, make_form):
        form = make_form()
        form.initialize()
        with pytest.raises(TaskFormStateError):
            form.initialize()

    @pytest.mark.asyncio
    async def test_submit_before_ready_rejected(self, make_form):
        form = make_form("42")
        with pytest.raises(TaskFormStateError) as exc_info:
            await form.submit()
        assert exc_info.value.state == "init"
        assert exc_info.value.operation == "submit"

    def test_field_change_before_ready_rejected(self, make_form):
        form = make_form("42")
        form.initialize()
        with pytest.raises(TaskFormStateError):
            form.handle_field_change("description", "x")

    def test_unknown_field_rejected(self, make_form):
        form = make_form()
        form.initialize()
        with pytest.raises(TaskFormValidationError) as exc_info:
            form.handle_field_change("colour", "red")
        assert exc_info.value.field == "colour"

    @pytest.mark.asyncio
    async def test_submit_after_navigation_rejected(self, make_form):
        form = make_form()
        form.initialize()
        form.handle_field_change("description", "x")
        await form.submit()
        with pytest.raises(TaskFormStateError):
            await form.submit()

    def test_field_change_accepts_attribute_names(self, make_form):
        form = make_form()
        form.initialize()
        form.handle_field_change("due_date", "2025-06-30")
        assert form.draft.due_date == "2025-06-30"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidate:
    def test_validate_is_pure(self, make_form):
        form = make_form()
        form.initialize()
        form.handle_field_change("priority", "urgent")
        first = form.validate()
        assert form.validate() == first
        assert form.form_errors == {}
        assert [e.field for e in first] == ["description", "priority"]

    def test_validate_explicit_draft(self, make_form):
        form = make_form()
        assert form.validate(TaskDraft(description="x")) == []

    @pytest.mark.asyncio
    async def test_custom_validator(self, make_form, backend):
        def reject_all(kind, draft):
            assert kind == "task"
            return [FieldError("description", "Nope")]

        form = make_form(validator=reject_all)
        form.initialize()
        form.handle_field_change("description", "fine")
        assert await form.submit() is False
        assert form.form_errors == {"description": "Nope"}
        assert backend.requests == []


# ---------------------------------------------------------------------------
# Cancel and teardown
# ---------------------------------------------------------------------------

class TestCancelAndTeardown:
    def test_cancel_navigates_without_request(self, make_form, backend, navigate):
        form = make_form()
        form.initialize()
        form.handle_field_change("description", "unsaved")
        form.cancel()
        assert navigate.calls == [("/",)]
        assert form.state == FormState.NAVIGATED
        assert form.closed
        assert backend.requests == []

    def test_cancel_uses_configured_home_route(self, make_form, navigate):
        form = make_form(ui_config=UIConfig(home_route="/dashboard"))
        form.initialize()
        form.cancel()
        assert navigate.calls == [("/dashboard",)]

    @pytest.mark.asyncio
    async def test_teardown_during_mount_cancels_load(self, auth, navigate):
        gated = GatedBackend(SEEDED)
        api = TaskApiClient("http://testserver/api", transport=httpx.MockTransport(gated.handler))
        form = TaskFormController(api, auth, navigate, task_id="42")

        pending = asyncio.ensure_future(form.mount())
        await gated.started.wait()
        assert form.state == FormState.LOADING
        assert form.loading is True

        form.teardown()
        assert await pending is None
        assert form.loaded_task is None
        assert form.draft == TaskDraft()
        assert not navigate.called
        await api.aclose()

    @pytest.mark.asyncio
    async def test_late_load_response_discarded(self, auth, navigate):
        gated = GatedBackend(SEEDED)
        api = TaskApiClient("http://testserver/api", transport=httpx.MockTransport(gated.handler))
        form = TaskFormController(api, auth, navigate, task_id="42")
        form.initialize()

        pending = asyncio.ensure_future(form.load_existing())
        await gated.started.wait()
        form.teardown()
        gated.release()

        assert await pending is None
        assert form.loaded_task is None
        assert form.draft == TaskDraft()
        assert form.loading is False
        await api.aclose()

    @pytest.mark.asyncio
    async def test_cancel_during_load(self, auth, navigate):
        gated = GatedBackend(SEEDED)
        api = TaskApiClient("http://testserver/api", transport=httpx.MockTransport(gated.handler))
        form = TaskFormController(api, auth, navigate, task_id="42")

        pending = asyncio.ensure_future(form.mount())
        await gated.started.wait()
        form.cancel()

        assert await pending is None
        assert navigate.calls == [("/",)]
        assert form.state == FormState.NAVIGATED
        await api.aclose()

    def test_teardown_is_idempotent(self, make_form):
        form = make_form()
        events = []
        form.subscribe(lambda event, f: events.append(event))
        form.teardown()
        form.teardown()
        assert events == ["torn_down"]


# ---------------------------------------------------------------------------
# Observers and restore
# ---------------------------------------------------------------------------

class TestObservers:
    @pytest.mark.asyncio
    async def test_events_in_order(self, make_form, seeded):
        form = make_form("42")
        events = []
        form.subscribe(lambda event, f: events.append((event, f.state)))
        await form.mount()
        form.handle_field_change("description", "New")
        await form.submit()
        assert [e for e, _ in events] == [
            "initialized", "loading", "loaded", "field_changed", "submitting", "submitted",
        ]
        assert events[1][1] == FormState.LOADING
        assert events[-1][1] == FormState.NAVIGATED

    def test_unsubscribe(self, make_form):
        form = make_form()
        events = []
        unsubscribe = form.subscribe(lambda event, f: events.append(event))
        form.initialize()
        unsubscribe()
        form.handle_field_change("description", "x")
        assert events == ["initialized"]


class TestRestore:
    @pytest.mark.asyncio
    async def test_restore_update_form(self, make_form, backend, set_title):
        form = make_form("42")
        form.restore(
            draft={"description": "Edited", "dueDate": "2025-06-30", "priority": "low", "status": "pending"},
            loaded_task=SEEDED,
            form_errors={"reminder": "Reminder must be a valid date and time"},
        )
        assert form.state == FormState.READY
        assert form.title == "Edit Task"
        assert form.draft.due_date == "2025-06-30"
        assert form.field_error("reminder")
        assert backend.requests == []
        assert not set_title.called

        form.handle_reset()
        assert form.draft.description == "Old"

    def test_restore_only_from_init(self, make_form):
        form = make_form()
        form.initialize()
        with pytest.raises(TaskFormStateError):
            form.restore(draft={})


class TestFormLogging:
    @pytest.mark.asyncio
    async def test_form_events_logged(self, make_form, tmp_path, read_log):
        file_logger = FileLogger(log_dir=str(tmp_path))
        queue = AsyncLogQueue(file_logger)
        form = make_form(log_queue=queue)
        form.initialize()
        await form.submit()
        queue.stop()

        events = read_log(tmp_path, "forms", "execution")
        assert [e["event"] for e in events] == ["form_initialized", "validation_failed"]
        assert events[1]["fields"] == ["description"]
        assert events[1]["mode"] == "add"
        assert events[1]["user_id"] == "u_1"


class TestWithMockedApi:
    """Controller against a mocked TaskApiClient, asserting the exact calls made."""

    def _api(self, record=None):
        api = MagicMock(spec=TaskApiClient)
        api.load_task = AsyncMock(return_value=record)
        api.create_task = AsyncMock(return_value={"msg": "Task created successfully"})
        api.update_task = AsyncMock(return_value={"msg": "Task updated successfully"})
        return api

    @pytest.mark.asyncio
    async def test_add_scenario(self, make_form, auth, navigate):
        api = self._api()
        form = make_form(api=api)
        await form.mount()
        form.handle_field_change("description", "Buy milk")

        assert await form.submit() is True

        api.create_task.assert_awaited_once_with(
            {"description": "Buy milk", "dueDate": "", "reminder": "", "priority": "medium", "status": "pending"},
            auth,
        )
        api.update_task.assert_not_awaited()
        api.load_task.assert_not_awaited()
        assert navigate.calls == [("/",)]

    @pytest.mark.asyncio
    async def test_update_scenario(self, make_form, auth):
        api = self._api(TaskRecord.model_validate(SEEDED))
        form = make_form("42", api=api)
        await form.mount()
        api.load_task.assert_awaited_once_with("42", auth)

        form.handle_field_change("description", "New")
        await form.submit()

        api.update_task.assert_awaited_once_with(
            "42",
            {"description": "New", "dueDate": "", "reminder": "", "priority": "low", "status": "pending"},
            auth,
        )
        api.create_task.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_form_locked_while_submitting(self, make_form):
        api = self._api()
        form = make_form(api=api)
        form.initialize()
        form.handle_field_change("description", "Buy milk")

        async def check_locked(payload, auth):
            assert form.state == FormState.SUBMITTING
            assert form.loading is True
            with pytest.raises(TaskFormStateError):
                form.handle_field_change("description", "late edit")
            with pytest.raises(TaskFormStateError):
                await form.submit()
            return {}

        api.create_task.side_effect = check_locked
        assert await form.submit() is True
        assert api.create_task.await_count == 1
        assert form.draft.description == "Buy milk"

    @pytest.mark.asyncio
    async def test_submit_after_teardown_does_not_navigate(self, make_form, navigate):
        api = self._api()
        form = make_form(api=api)
        form.initialize()
        form.handle_field_change("description", "Buy milk")

        async def unmount_mid_request(payload, auth):
            form.teardown()
            return {}

        api.create_task.side_effect = unmount_mid_request
        assert await form.submit() is True
        assert not navigate.called
