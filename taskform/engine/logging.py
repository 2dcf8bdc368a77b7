"""
taskform Logging — JSON-lines files fed by a background flusher.

Files: {log_dir}/{object_type}/{category}/{YYYY-MM-DD}.jsonl

    requests/execution    one line per HTTP attempt
    requests/performance  total duration of each successful call
    forms/execution       controller lifecycle events
    system/execution      startup/shutdown, and anything sent to an unknown folder

Callers never touch files: they build a LogEntry and push() it onto the
AsyncLogQueue, which writes batches from a daemon thread.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import defaultdict
from datetime import date, datetime, timezone
from pathlib import Path
from queue import Empty, Full, Queue
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

logger = logging.getLogger("taskform.engine.logging")

LOG_FOLDERS = frozenset({
    ("requests", "execution"),
    ("requests", "performance"),
    ("forms", "execution"),
    ("system", "execution"),
})
FALLBACK_FOLDER = ("system", "execution")

# Upper bound on how long the flush thread blocks, so stop() returns promptly
MAX_POLL_SECONDS = 0.1


class LogEntry(NamedTuple):
    object_type: str
    category: str
    data: Dict[str, Any]

    def to_json(self) -> str:
        return json.dumps(self.data, default=str, separators=(",", ":"))


class FileLogger:
    """Appends entries to today's file for their folder. Safe to share between threads."""

    def __init__(self, log_dir: str = "logs"):
        self._root = Path(log_dir)
        self._lock = threading.Lock()
        for folder in LOG_FOLDERS:
            self._root.joinpath(*folder).mkdir(parents=True, exist_ok=True)

    def path_for(self, entry: LogEntry) -> Path:
        folder = (entry.object_type, entry.category)
        if folder not in LOG_FOLDERS:
            folder = FALLBACK_FOLDER
        return self._root.joinpath(*folder, f"{date.today().isoformat()}.jsonl")

    def write(self, entry: LogEntry) -> None:
        self.write_batch([entry])

    def write_batch(self, entries: Iterable[LogEntry]) -> None:
        lines_by_path: Dict[Path, List[str]] = defaultdict(list)
        for entry in entries:
            lines_by_path[self.path_for(entry)].append(entry.to_json())

        with self._lock:
            for path, lines in lines_by_path.items():
                with path.open("a", encoding="utf-8") as f:
                    f.write("\n".join(lines) + "\n")


class AsyncLogQueue:
    """
    Bounded buffer between callers and a FileLogger.

    push() never blocks: when the buffer is full the entry is dropped and
    counted. The flush thread waits up to flush_interval_ms (capped at
    MAX_POLL_SECONDS) for an entry, then writes it together with whatever
    else is buffered (at most flush_batch_size per write). stop() writes
    everything still buffered.
    """

    def __init__(
        self,
        file_logger: FileLogger,
        flush_interval_ms: int = 100,
        flush_batch_size: int = 50,
        max_queue_size: int = 10000,
    ):
        self._writer = file_logger
        self._interval = min(flush_interval_ms / 1000.0, MAX_POLL_SECONDS)
        self._batch_size = max(1, flush_batch_size)
        self._buffer: Queue[LogEntry] = Queue(maxsize=max_queue_size)
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._dropped = 0

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stopping.clear()
        self._thread = threading.Thread(target=self._run, name="taskform-log-flush", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stopping.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

        batch = self._take(wait=0)
        while batch:
            self._flush(batch)
            batch = self._take(wait=0)
        if self._dropped:
            logger.warning(f"Log queue stopped; {self._dropped} entries were dropped")

    def push(self, entry: LogEntry) -> bool:
        try:
            self._buffer.put_nowait(entry)
        except Full:
            self._dropped += 1
            return False
        return True

    @property
    def pending_count(self) -> int:
        return self._buffer.qsize()

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def _run(self) -> None:
        while not self._stopping.is_set():
            self._flush(self._take(wait=self._interval))

    def _take(self, wait: float) -> List[LogEntry]:
        try:
            first = self._buffer.get(timeout=wait) if wait > 0 else self._buffer.get_nowait()
        except Empty:
            return []

        batch = [first]
        while len(batch) < self._batch_size:
            try:
                batch.append(self._buffer.get_nowait())
            except Empty:
                break
        return batch

    def _flush(self, batch: List[LogEntry]) -> None:
        if not batch:
            return
        try:
            self._writer.write_batch(batch)
        except OSError as e:
            logger.error(f"Could not write {len(batch)} log entries: {e}")


# ---------------------------------------------------------------------------
# Entry builders
# ---------------------------------------------------------------------------

def _entry(object_type: str, category: str, event: str, level: str = "INFO", **fields: Any) -> LogEntry:
    """Fields left as None are omitted from the line."""
    data: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": level,
        "event": event,
    }
    data.update((key, value) for key, value in fields.items() if value is not None)
    return LogEntry(object_type, category, data)


def log_request(
    method: str,
    url: str,
    status_code: Optional[int],
    duration_ms: float,
    success: bool,
    *,
    execution_id: Optional[str] = None,
    user_id: Optional[str] = None,
    attempt: int = 1,
    request_body: Optional[Any] = None,
    error: Optional[str] = None,
) -> LogEntry:
    """One HTTP attempt. Pass request_body only when payload logging is enabled."""
    return _entry(
        "requests", "execution", "request_sent",
        level="INFO" if success else "ERROR",
        execution_id=execution_id,
        user_id=user_id,
        method=method,
        url=url,
        status_code=status_code,
        duration_ms=round(duration_ms, 2),
        success=success,
        attempt=attempt,
        request_body=request_body,
        error=error,
    )


def log_request_performance(method: str, url: str, duration_ms: float) -> LogEntry:
    return _entry(
        "requests", "performance", "request_performance",
        method=method, url=url, duration_ms=round(duration_ms, 2),
    )


def log_form_event(
    event: str,
    mode: str,
    state: str,
    *,
    task_id: Optional[str] = None,
    execution_id: Optional[str] = None,
    user_id: Optional[str] = None,
    fields: Optional[List[str]] = None,
    error: Optional[str] = None,
) -> LogEntry:
    return _entry(
        "forms", "execution", event,
        level="ERROR" if error else "INFO",
        execution_id=execution_id,
        user_id=user_id,
        mode=mode,
        state=state,
        task_id=task_id,
        fields=fields or None,
        error=error,
    )


def log_system_event(event: str, level: str = "INFO", details: Optional[Dict[str, Any]] = None) -> LogEntry:
    return _entry("system", "execution", event, level=level, details=details or None)


# ---------------------------------------------------------------------------
# Process-wide queue
# ---------------------------------------------------------------------------

_global_queue: Optional[AsyncLogQueue] = None


def init_logging(
    log_dir: str = "logs",
    flush_interval_ms: int = 100,
    flush_batch_size: int = 50,
    max_queue_size: int = 10000,
) -> AsyncLogQueue:
    """Start the process-wide queue, replacing (and draining) any previous one."""
    global _global_queue
    shutdown_logging()
    _global_queue = AsyncLogQueue(
        FileLogger(log_dir),
        flush_interval_ms=flush_interval_ms,
        flush_batch_size=flush_batch_size,
        max_queue_size=max_queue_size,
    )
    _global_queue.start()
    return _global_queue


def get_log_queue() -> Optional[AsyncLogQueue]:
    return _global_queue


def log(entry: LogEntry) -> bool:
    """Push onto the process-wide queue; False when logging was never started."""
    if _global_queue is None:
        return False
    return _global_queue.push(entry)


def shutdown_logging() -> None:
    global _global_queue
    queue, _global_queue = _global_queue, None
    if queue is not None:
        queue.stop()
