"""
taskform — Main Reflex application entry point.

Boot sequence:
    1. _init_platform() — load taskform.yaml, configure logging, start the log queue
    2. Create rx.App(), register the task form routes and the log-queue shutdown
"""

import contextlib
import logging

import reflex as rx

from taskform.engine.config import TaskFormConfig, load_config
from taskform.engine.errors import TaskFormConfigError
from taskform.engine.logging import init_logging, log, log_system_event, shutdown_logging
from taskform.ui.task_page import TaskFormState, task_form_page

logger = logging.getLogger("taskform.startup")

# Guard: only initialize once, even if the module is re-imported
_platform_initialized = False


def _init_platform() -> TaskFormConfig:
    """Load config and start the structured log queue."""
    global _platform_initialized

    try:
        config = load_config()
    except TaskFormConfigError as e:
        logger.error(f"Invalid taskform.yaml, using defaults: {e.message}")
        config = TaskFormConfig()

    if _platform_initialized:
        return config
    _platform_initialized = True

    logging.basicConfig(level=config.logging.level.upper())
    init_logging(
        log_dir=config.logging.directory,
        flush_interval_ms=config.logging.flush_interval_ms,
        flush_batch_size=config.logging.flush_batch_size,
        max_queue_size=config.logging.max_queue_size,
    )
    log(log_system_event(
        "startup",
        details={"environment": config.environment, "api_base_url": config.api.base_url},
    ))
    logger.info(f"taskform initialized ({config.environment}) → {config.api.base_url}")
    return config


@contextlib.asynccontextmanager
async def _log_queue_lifespan():
    """Drain the structured log queue when the backend shuts down."""
    yield
    log(log_system_event("shutdown"))
    shutdown_logging()


_config = _init_platform()

# Create the Reflex app
app = rx.App()
app.register_lifespan_task(_log_queue_lifespan)

app.add_page(
    task_form_page,
    route="/tasks/new",
    title=_config.ui.add_title,
    on_load=TaskFormState.on_load,
)
app.add_page(
    task_form_page,
    route="/tasks/edit",
    title=_config.ui.edit_title,
    on_load=TaskFormState.on_load,
)
