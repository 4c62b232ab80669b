from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..models import DEFAULT_SEVERITY, DEFAULT_STATUS
from ..schemas import BugRecord
from ..validation import TAG_MAX_LENGTH, sanitize_string


@dataclass
class BugForm:
    """
    Editable draft of a bug on the client.

    Tags are managed here rather than by the server: ``add_tag`` refuses
    blank, over-long and duplicate tags. ``validate`` runs the quick checks a
    form can do before submitting; the server remains the authority.
    """

    title: str = ""
    description: str = ""
    severity: str = DEFAULT_SEVERITY
    status: str = DEFAULT_STATUS
    reported_by: str = ""
    assigned_to: str = ""
    tags: List[str] = field(default_factory=list)
    reproduction_steps: str = ""

    @classmethod
    def from_record(cls, record: BugRecord) -> "BugForm":
        return cls(
            title=record.title,
            description=record.description,
            severity=record.severity,
            status=record.status,
            reported_by=record.reported_by,
            assigned_to=record.assigned_to or "",
            tags=list(record.tags),
            reproduction_steps=record.reproduction_steps or "",
        )

    def add_tag(self, tag: str) -> bool:
        """Append a sanitized tag. Returns False when it is blank, too long or already present."""
        trimmed = sanitize_string(tag)
        if not trimmed or len(trimmed) > TAG_MAX_LENGTH or trimmed in self.tags:
            return False
        self.tags.append(trimmed)
        return True

    def remove_tag(self, tag: str) -> None:
        self.tags = [t for t in self.tags if t != tag]

    def validate(self) -> Dict[str, str]:
        """Return field -> message for every problem found; empty when submittable."""
        errors: Dict[str, str] = {}
        title = self.title.strip()
        if not title:
            errors["title"] = "Title is required"
        elif len(title) < 3:
            errors["title"] = "Title must be at least 3 characters"

        description = self.description.strip()
        if not description:
            errors["description"] = "Description is required"
        elif len(description) < 10:
            errors["description"] = "Description must be at least 10 characters"

        if not self.reported_by.strip():
            errors["reportedBy"] = "Reporter name is required"
        return errors

    def to_payload(self) -> Dict[str, Any]:
        """Wire payload for create/update requests."""
        return {
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "status": self.status,
            "reportedBy": self.reported_by,
            "assignedTo": self.assigned_to,
            "tags": list(self.tags),
            "reproductionSteps": self.reproduction_steps,
        }
