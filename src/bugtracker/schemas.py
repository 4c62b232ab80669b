from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SeverityValue = Literal["low", "medium", "high", "critical"]
StatusValue = Literal["open", "in-progress", "resolved", "closed"]

_WIRE_CONFIG = dict(alias_generator=to_camel, populate_by_name=True)


class _BugPayload(BaseModel):
    """
    Shape of a bug request body.

    Only JSON types are checked here; unknown and read-only keys (id,
    createdAt, updatedAt) are rejected. Lengths, enumerations and required
    fields are enforced by ``bugtracker.validation`` so that every violation
    is reported in one response.
    """

    model_config = ConfigDict(**_WIRE_CONFIG)

    title: Optional[str] = Field(default=None, description="Short summary, 3..100 chars")
    description: Optional[str] = Field(default=None, description="Details, 10..1000 chars")
    severity: Optional[str] = Field(default=None, description="low, medium, high or critical (any casing)")
    status: Optional[str] = Field(default=None, description="open, in-progress, resolved or closed (any casing)")
    reported_by: Optional[str] = Field(default=None, description="Reporter name, 2..50 chars")
    assigned_to: Optional[str] = Field(default=None, description="Optional assignee, up to 50 chars")
    tags: Optional[List[str]] = Field(default=None, description="Tags, each up to 20 chars; blanks dropped")
    reproduction_steps: Optional[str] = Field(default=None, description="Optional steps, up to 500 chars")

    def changes(self) -> Dict[str, Any]:
        """Return only the fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


# PUBLIC_INTERFACE
class BugCreate(_BugPayload):
    """
    Schema for creating a bug. title, description and reportedBy are required.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "title": "Login button unresponsive",
                "description": "Clicking the login button on Safari does nothing.",
                "severity": "high",
                "reportedBy": "Alice",
                "tags": ["ui", "auth"],
                "reproductionSteps": "1. Open Safari 2. Click Login",
            }
        },
    )


# PUBLIC_INTERFACE
class BugUpdate(_BugPayload):
    """
    Schema for updating a bug. Supplied fields are merged over the stored
    record; omitted fields are left unchanged.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={"example": {"status": "in-progress", "assignedTo": "Bob"}},
    )


# PUBLIC_INTERFACE
class BugRecord(BaseModel):
    """
    A bug as returned by the API. Also used by the client to parse responses.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "id": "5f0c1b7e9d3a4c2b8e6f1a2b3c4d5e6f",
                "title": "Login button unresponsive",
                "description": "Clicking the login button on Safari does nothing.",
                "severity": "high",
                "status": "open",
                "reportedBy": "Alice",
                "assignedTo": None,
                "tags": ["ui", "auth"],
                "reproductionSteps": "1. Open Safari 2. Click Login",
                "createdAt": "2025-01-25T10:15:30.123456Z",
                "updatedAt": "2025-01-25T10:15:30.123456Z",
            }
        },
        **_WIRE_CONFIG,
    )

    id: str = Field(..., description="Opaque identifier assigned by the store")
    title: str
    description: str
    severity: SeverityValue
    status: StatusValue
    reported_by: str
    assigned_to: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    reproduction_steps: Optional[str] = None
    created_at: datetime = Field(..., description="Creation timestamp (UTC)")
    updated_at: datetime = Field(..., description="Last update timestamp (UTC)")


class FieldError(BaseModel):
    field: str
    message: str


# PUBLIC_INTERFACE
class BugDataEnvelope(BaseModel):
    success: bool = True
    data: BugRecord


# PUBLIC_INTERFACE
class BugMessageEnvelope(BaseModel):
    success: bool = True
    message: str
    data: BugRecord


# PUBLIC_INTERFACE
class BugListEnvelope(BaseModel):
    success: bool = True
    count: int = Field(..., description="Number of bugs in data")
    data: List[BugRecord]


# PUBLIC_INTERFACE
class MessageEnvelope(BaseModel):
    success: bool = True
    message: str


class ErrorEnvelope(BaseModel):
    success: bool = False
    message: str
    errors: Optional[List[FieldError]] = None


# PUBLIC_INTERFACE
class HealthStatus(BaseModel):
    status: str = Field(..., description="'OK' when the process is serving requests")
    timestamp: datetime
    uptime: float = Field(..., description="Seconds since the application started")
