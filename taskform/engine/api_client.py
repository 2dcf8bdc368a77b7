"""
taskform API Client — Outbound HTTP calls to the task backend.

Pipeline (per call):
    1. Build URL from base_url + path, attach Authorization from AuthContext
    2. Execute via httpx.AsyncClient (one pooled client per TaskApiClient)
    3. Retry idempotent methods with backoff on 5xx / transport errors
    4. Notify the user (toast) of the server's message on success or failure
    5. Log the call to requests/ log folder (body only if log_payload=True)

Non-2xx and transport failures raise TaskFormRequestError after the error
notification; callers decide whether to proceed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from taskform.engine.config import RetryConfig, TaskFormConfig
from taskform.engine.context import AuthContext
from taskform.engine.errors import TaskFormRequestError, TaskFormSessionError
from taskform.engine.logging import AsyncLogQueue, log_request, log_request_performance
from taskform.records.task import TaskDraft, TaskRecord

logger = logging.getLogger("taskform.engine.api_client")

Notifier = Callable[[str, str], Any]

IDEMPOTENT_METHODS = frozenset({"GET", "PUT"})
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."
SESSION_ERROR_MESSAGE = "You are not logged in. Please log in and try again."


class TaskApiClient:
    """
    Async REST client for the /tasks endpoints.

    Uses one httpx.AsyncClient (connection pooled) for its lifetime; close it
    with aclose() or use the client as an async context manager.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15.0,
        retry: Optional[RetryConfig] = None,
        notifier: Optional[Notifier] = None,
        log_queue: Optional[AsyncLogQueue] = None,
        log_payload: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._retry = retry or RetryConfig()
        self._notifier = notifier
        self._log_queue = log_queue
        self._log_payload = log_payload
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: TaskFormConfig, **kwargs: Any) -> "TaskApiClient":
        return cls(
            base_url=config.api.base_url,
            timeout=config.api.timeout,
            retry=config.api.retry,
            log_payload=config.api.log_payload,
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def __aenter__(self) -> "TaskApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -----------------------------------------------------------------------
    # Task endpoints
    # -----------------------------------------------------------------------

    async def load_task(self, task_id: str, auth: AuthContext) -> TaskRecord:
        """GET /tasks/{id} → TaskRecord. No success toast on load."""
        body = await self.request(
            "GET", f"/tasks/{task_id}", auth=auth, show_success_toast=False,
        )
        return TaskRecord.from_response(body)

    async def create_task(self, payload: Dict[str, Any], auth: AuthContext) -> Any:
        """POST /tasks with the draft payload."""
        return await self.request("POST", "/tasks", auth=auth, json=payload)

    async def update_task(self, task_id: str, payload: Dict[str, Any], auth: AuthContext) -> Any:
        """PUT /tasks/{id} with the draft payload."""
        return await self.request("PUT", f"/tasks/{task_id}", auth=auth, json=payload)

    async def save_task(
        self,
        draft: TaskDraft,
        auth: AuthContext,
        task_id: Optional[str] = None,
    ) -> Any:
        """Create when no task_id is given, otherwise update."""
        payload = draft.to_payload()
        if task_id:
            return await self.update_task(task_id, payload, auth)
        return await self.create_task(payload, auth)

    # -----------------------------------------------------------------------
    # Request pipeline
    # -----------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth: AuthContext,
        json: Optional[Dict[str, Any]] = None,
        show_success_toast: bool = True,
        show_error_toast: bool = True,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Raises:
            TaskFormSessionError if auth carries no token.
            TaskFormRequestError on non-2xx or transport failure.
        """
        method = method.upper()
        try:
            headers = auth.headers()
        except TaskFormSessionError:
            logger.warning(f"{method} {path} not sent: no auth token (execution={auth.execution_id})")
            if show_error_toast:
                self._notify("error", SESSION_ERROR_MESSAGE)
            raise
        url = f"{self._base_url}{path}"
        max_retries = self._retry.count if method in IDEMPOTENT_METHODS else 0
        start_time = time.monotonic()

        for attempt in range(max_retries + 1):
            attempt_start = time.monotonic()
            try:
                status_code, body = await self._http_call(method, path, headers, json)
            except httpx.TransportError as e:
                self._log(method, url, None, attempt_start, auth, attempt, json, error=str(e))
                if attempt < max_retries:
                    delay = self._calc_delay(attempt)
                    logger.warning(
                        f"{method} {url} failed: {e}, retrying in {delay}s "
                        f"(attempt {attempt + 1}/{max_retries})"
                    )
                    await asyncio.sleep(delay)
                    continue
                if show_error_toast:
                    self._notify("error", GENERIC_ERROR_MESSAGE)
                raise TaskFormRequestError(
                    f"{method} {path} failed: {e}",
                    method=method,
                    url=url,
                    execution_id=auth.execution_id,
                ) from e

            success = 200 <= status_code < 300
            self._log(method, url, status_code, attempt_start, auth, attempt, json,
                      error=None if success else f"HTTP {status_code}")

            if success:
                self._log_performance(method, url, start_time)
                if show_success_toast:
                    message = self._server_message(body)
                    if message:
                        self._notify("success", message)
                return body

            if status_code >= 500 and attempt < max_retries:
                delay = self._calc_delay(attempt)
                logger.info(
                    f"{method} {url} got {status_code}, retrying in {delay}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
                await asyncio.sleep(delay)
                continue

            message = self._server_message(body) or GENERIC_ERROR_MESSAGE
            if show_error_toast:
                self._notify("error", message)
            raise TaskFormRequestError(
                f"{method} {path} failed with HTTP {status_code}: {message}",
                method=method,
                url=url,
                status_code=status_code,
                response_body=body,
                execution_id=auth.execution_id,
            )

        # Unreachable: the final attempt either returns or raises
        raise TaskFormRequestError(f"{method} {path} failed", method=method, url=url)

    async def _http_call(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        body: Optional[Dict[str, Any]],
    ) -> Tuple[int, Any]:
        response = await self._client.request(method, path, headers=headers, json=body)
        if not response.content:
            return response.status_code, None
        try:
            return response.status_code, response.json()
        except ValueError:
            return response.status_code, response.text

    def _calc_delay(self, attempt: int) -> float:
        base_delay = self._retry.delay
        if self._retry.backoff == "exponential":
            return base_delay * (2 ** attempt)
        if self._retry.backoff == "linear":
            return base_delay * (attempt + 1)
        return base_delay

    @staticmethod
    def _server_message(body: Any) -> Optional[str]:
        if isinstance(body, dict):
            msg = body.get("msg") or body.get("message")
            if msg:
                return str(msg)
        return None

    def _notify(self, level: str, message: str) -> None:
        if self._notifier is not None:
            self._notifier(level, message)

    # -----------------------------------------------------------------------
    # Logging
    # -----------------------------------------------------------------------

    def _log(
        self,
        method: str,
        url: str,
        status_code: Optional[int],
        started: float,
        auth: AuthContext,
        attempt: int,
        body: Optional[Dict[str, Any]],
        error: Optional[str] = None,
    ) -> None:
        duration_ms = (time.monotonic() - started) * 1000
        if error:
            logger.warning(f"{method} {url} → {status_code or 'no response'} ({duration_ms:.1f}ms): {error}")
        else:
            logger.debug(f"{method} {url} → {status_code} ({duration_ms:.1f}ms)")

        if self._log_queue is None:
            return
        self._log_queue.push(log_request(
            method=method,
            url=url,
            status_code=status_code,
            duration_ms=duration_ms,
            success=error is None,
            execution_id=auth.execution_id,
            user_id=auth.user_id,
            attempt=attempt + 1,
            request_body=body if self._log_payload else None,
            error=error,
        ))

    def _log_performance(self, method: str, url: str, started: float) -> None:
        if self._log_queue is not None:
            duration_ms = (time.monotonic() - started) * 1000
            self._log_queue.push(log_request_performance(method, url, duration_ms))
