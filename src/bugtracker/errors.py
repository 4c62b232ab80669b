"""Error taxonomy shared by the API, the stores and the client.

Every error has a code and an HTTP status. ``to_response()`` produces the
uniform failure envelope ``{success: false, message, errors?}``. Messages
never contain internal details; the catch-all handler in ``main`` is the only
place exception text may be exposed, and only in development mode.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from .utils import error_envelope


@dataclass(frozen=True)
class FieldViolation:
    """A single field-level constraint failure."""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class BugTrackerError(Exception):
    """Base exception for all bug tracker failures."""

    code = "BUG_TRACKER_ERROR"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_response(self) -> Dict[str, Any]:
        return error_envelope(self.message)


class ValidationError(BugTrackerError):
    """One or more fields failed validation. Recoverable by fixing the input."""

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, violations: Iterable[FieldViolation], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.violations: List[FieldViolation] = list(violations)

    @property
    def fields(self) -> List[str]:
        return [v.field for v in self.violations]

    def to_response(self) -> Dict[str, Any]:
        return error_envelope(self.message, self.violations)

    def __str__(self) -> str:
        details = "; ".join(f"{v.field}: {v.message}" for v in self.violations)
        return f"{self.message} ({details})" if details else self.message


class RecordNotFoundError(BugTrackerError):
    """No bug exists with the requested identifier."""

    code = "NOT_FOUND"
    http_status = 404

    def __init__(self, bug_id: Optional[str] = None, message: str = "Bug not found") -> None:
        super().__init__(message)
        self.bug_id = bug_id


class BackendUnreachableError(BugTrackerError):
    """Client-side only: the API did not answer its liveness probe."""

    code = "BACKEND_UNREACHABLE"
    http_status = 503


class InternalError(BugTrackerError):
    """Unexpected failure; callers only ever see a generic message."""

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str = "Internal server error") -> None:
        super().__init__(message)
