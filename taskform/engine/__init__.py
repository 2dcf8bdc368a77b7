"""taskform Engine — Errors, configuration, logging, auth context and API client."""

from taskform.engine.api_client import TaskApiClient  # noqa: F401
from taskform.engine.context import AuthContext  # noqa: F401

__all__ = [
    "TaskApiClient",
    "AuthContext",
]
