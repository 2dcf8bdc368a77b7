"""
taskform Auth Context — Immutable session credentials handed to each operation.

The form never reads ambient session state; whoever mounts it passes an
AuthContext, and every backend call takes its Authorization header from it.

Usage:
    from taskform.engine.context import AuthContext

    auth = AuthContext(token=session_token, user_id="u_1")
    headers = auth.headers()
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from taskform.engine.errors import TaskFormSessionError


@dataclass(frozen=True)
class AuthContext:
    """Per-form session credentials. Frozen so no operation can swap the token."""

    token: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    execution_id: str = field(default_factory=lambda: f"exec_{uuid.uuid4().hex[:12]}")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    def headers(self) -> Dict[str, str]:
        """Authorization header carrying the raw token (no scheme prefix)."""
        if not self.token:
            raise TaskFormSessionError(
                "No auth token — user not authenticated",
                execution_id=self.execution_id,
            )
        return {"Authorization": self.token}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging. The token itself is never included."""
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "execution_id": self.execution_id,
            "is_authenticated": self.is_authenticated,
        }
