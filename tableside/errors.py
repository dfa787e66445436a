"""
Domain error taxonomy shared by every component of the core.

Each error carries the operation that raised it and the identifiers it was
working on, so the HTTP layer and logs can report it without re-deriving
state.  An empty result set is never an error: filtering and ranking return
a ``no_compliant_dishes`` status instead.
"""
from __future__ import annotations

from typing import Any


class CoreError(Exception):
    """Base class for every error surfaced by the core."""

    code = "core_error"

    def __init__(self, message: str, *, operation: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "operation": self.operation,
            **self.context,
        }


class InvalidArgument(CoreError):
    code = "invalid_argument"


class NotFound(CoreError):
    code = "not_found"


class ConflictError(CoreError):
    code = "conflict"

    def __init__(self, message: str, *, operation: str, existing_session_id: str, **context: Any) -> None:
        super().__init__(
            message,
            operation=operation,
            existing_session_id=existing_session_id,
            **context,
        )
        self.existing_session_id = existing_session_id


class InvalidState(CoreError):
    code = "invalid_state"


class AmbiguousReference(CoreError):
    code = "ambiguous_reference"
