"""
taskform Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

BASE_URL = "http://testserver/api"


# ---------------------------------------------------------------------------
# Global singletons
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_config():
    """Reset global singletons between tests."""
    import taskform.engine.config as cfg_mod
    import taskform.engine.logging as log_mod

    cfg_mod._config = None
    yield
    cfg_mod._config = None
    log_mod.shutdown_logging()


# ---------------------------------------------------------------------------
# Fake task backend (httpx.MockTransport)
# ---------------------------------------------------------------------------

class FakeBackend:
    """
    In-memory stand-in for the /tasks REST API.

    Every request is recorded. Canned responses registered with respond()
    take precedence over the default CRUD behaviour.
    """

    def __init__(self):
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self._canned: Dict[Tuple[str, str], List[Any]] = {}
        self._next_id = 1

    def respond(self, method: str, path: str, *responses: Any) -> None:
        """
        Queue responses for METHOD path. Each is (status, body) or an
        exception instance to raise. The last one repeats.
        """
        self._canned[(method.upper(), path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        key = (request.method, path)

        if key in self._canned:
            queue = self._canned[key]
            canned = queue.pop(0) if len(queue) > 1 else queue[0]
            if isinstance(canned, Exception):
                raise canned
            status, body = canned
            return httpx.Response(status, json=body)

        match = re.fullmatch(r"/tasks/(\w+)", path)
        if request.method == "GET" and match:
            task = self.tasks.get(match.group(1))
            if task is None:
                return httpx.Response(404, json={"status": False, "msg": "Task not found"})
            return httpx.Response(200, json={"task": task, "status": True, "msg": "Task found successfully"})

        if request.method == "POST" and path == "/tasks":
            task_id = str(self._next_id)
            self._next_id += 1
            self.tasks[task_id] = {"_id": task_id, **json.loads(request.content)}
            return httpx.Response(200, json={"task": self.tasks[task_id], "status": True, "msg": "Task created successfully"})

        if request.method == "PUT" and match:
            task_id = match.group(1)
            if task_id not in self.tasks:
                return httpx.Response(404, json={"status": False, "msg": "Task not found"})
            self.tasks[task_id].update(json.loads(request.content))
            return httpx.Response(200, json={"task": self.tasks[task_id], "status": True, "msg": "Task updated successfully"})

        return httpx.Response(404, json={"status": False, "msg": "Not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last_request(self) -> Optional[httpx.Request]:
        return self.requests[-1] if self.requests else None

    def body_of(self, request: httpx.Request) -> Dict[str, Any]:
        return json.loads(request.content)


@pytest.fixture
def backend():
    return FakeBackend()


class Recorder:
    """Callable that remembers every call; used for navigate/notify/title."""

    def __init__(self):
        self.calls: List[Tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)

    @property
    def called(self) -> bool:
        return bool(self.calls)


@pytest.fixture
def navigate():
    return Recorder()


@pytest.fixture
def notifier():
    return Recorder()


@pytest.fixture
def set_title():
    return Recorder()


@pytest.fixture
def auth():
    from taskform.engine.context import AuthContext

    return AuthContext(token="tok_abc123", user_id="u_1", session_id="sess_1")


@pytest.fixture
def api(backend, notifier):
    """TaskApiClient wired to the fake backend."""
    from taskform.engine.api_client import TaskApiClient

    return TaskApiClient(
        base_url=BASE_URL,
        notifier=notifier,
        transport=backend.transport,
    )


@pytest.fixture
def make_form(api, auth, navigate, set_title):
    """Factory for TaskFormController instances bound to the fake backend."""
    from taskform.forms.task_form import TaskFormController

    def _make(task_id: Optional[str] = None, **kwargs: Any) -> TaskFormController:
        kwargs.setdefault("set_title", set_title)
        return TaskFormController(
            api=kwargs.pop("api", api),
            auth=kwargs.pop("auth", auth),
            navigate=kwargs.pop("navigate", navigate),
            task_id=task_id,
            **kwargs,
        )

    return _make


@pytest.fixture
def read_log():
    """Read today's JSONL entries for one log folder; [] when nothing was written."""
    from datetime import date
    from pathlib import Path

    def _read(log_dir: Any, object_type: str, category: str) -> List[Dict[str, Any]]:
        path = Path(log_dir) / object_type / category / f"{date.today().isoformat()}.jsonl"
        if not path.exists():
            return []
        return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines() if line]

    return _read
