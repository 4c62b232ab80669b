from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, TypedDict


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Status(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


SEVERITY_VALUES = tuple(s.value for s in Severity)
STATUS_VALUES = tuple(s.value for s in Status)

DEFAULT_SEVERITY = Severity.MEDIUM.value
DEFAULT_STATUS = Status.OPEN.value


# PUBLIC_INTERFACE
class BugEntity(TypedDict):
    """
    Storage-level representation of a bug report, shared by all store backends.

    Fields:
    - id: Opaque 32-char hex identifier assigned by the store
    - title: 3..100 chars, trimmed
    - description: 10..1000 chars, trimmed
    - severity: one of low/medium/high/critical (lowercase)
    - status: one of open/in-progress/resolved/closed (lowercase)
    - reported_by: 2..50 chars, trimmed
    - assigned_to: Optional assignee, <= 50 chars
    - tags: Ordered tags, each <= 20 chars, never blank
    - reproduction_steps: Optional text, <= 500 chars
    - created_at: UTC creation timestamp
    - updated_at: UTC last update timestamp, never earlier than created_at
    """

    id: str
    title: str
    description: str
    severity: str
    status: str
    reported_by: str
    assigned_to: Optional[str]
    tags: List[str]
    reproduction_steps: Optional[str]
    created_at: datetime
    updated_at: datetime


# Python attribute name -> wire (JSON) name
WIRE_NAMES: Dict[str, str] = {
    "id": "id",
    "title": "title",
    "description": "description",
    "severity": "severity",
    "status": "status",
    "reported_by": "reportedBy",
    "assigned_to": "assignedTo",
    "tags": "tags",
    "reproduction_steps": "reproductionSteps",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}

_FROM_WIRE: Dict[str, str] = {wire: attr for attr, wire in WIRE_NAMES.items()}

TIMESTAMP_FIELDS = frozenset({"created_at", "updated_at"})
WRITABLE_FIELDS = (
    "title",
    "description",
    "severity",
    "status",
    "reported_by",
    "assigned_to",
    "tags",
    "reproduction_steps",
)


def field_name(name: str) -> Optional[str]:
    """Resolve a wire or attribute field name to the attribute name, or None."""
    if name in WIRE_NAMES:
        return name
    return _FROM_WIRE.get(name)


def wire_name(name: str) -> str:
    return WIRE_NAMES.get(name, name)
