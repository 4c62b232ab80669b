"""
Bug record validation.

Validation is a two-step pipeline: ``normalize_payload`` trims strings,
lowercases enumerations and drops blank tags, then ``collect_violations``
checks lengths and enum membership on the normalized values. All violations
are collected and raised together in a single ``ValidationError``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import FieldViolation, ValidationError
from .models import (
    DEFAULT_SEVERITY,
    DEFAULT_STATUS,
    SEVERITY_VALUES,
    STATUS_VALUES,
    WRITABLE_FIELDS,
    field_name,
    wire_name,
)

_BUG_ID_RE = re.compile(r"[0-9a-fA-F]{32}")
_ANGLE_BRACKETS_RE = re.compile(r"[<>]")

TAG_MAX_LENGTH = 20

_ENUM_FIELDS = ("severity", "status")
_OPTIONAL_TEXT_FIELDS = ("assigned_to", "reproduction_steps")
_READ_ONLY_FIELDS = frozenset({"id", "created_at", "updated_at"})


@dataclass(frozen=True)
class _TextRule:
    required_message: Optional[str]
    min_length: int
    min_message: str
    max_length: int
    max_message: str


_TEXT_RULES: Dict[str, _TextRule] = {
    "title": _TextRule(
        "Bug title is required",
        3, "Title must be at least 3 characters long",
        100, "Title cannot exceed 100 characters",
    ),
    "description": _TextRule(
        "Bug description is required",
        10, "Description must be at least 10 characters long",
        1000, "Description cannot exceed 1000 characters",
    ),
    "reported_by": _TextRule(
        "Reporter name is required",
        2, "Reporter name must be at least 2 characters",
        50, "Reporter name cannot exceed 50 characters",
    ),
    "assigned_to": _TextRule(
        None, 0, "", 50, "Assignee name cannot exceed 50 characters",
    ),
    "reproduction_steps": _TextRule(
        None, 0, "", 500, "Reproduction steps cannot exceed 500 characters",
    ),
}

_ENUM_MESSAGES = {
    "severity": "Severity must be one of: " + ", ".join(SEVERITY_VALUES),
    "status": "Status must be one of: " + ", ".join(STATUS_VALUES),
}

_ENUM_VALUES = {"severity": SEVERITY_VALUES, "status": STATUS_VALUES}


def _normalize_enum(value: str) -> str:
    return value.strip().lower()


# PUBLIC_INTERFACE
def is_valid_severity(value: Any) -> bool:
    """Return True if value is a severity level in any casing."""
    return isinstance(value, str) and _normalize_enum(value) in SEVERITY_VALUES


# PUBLIC_INTERFACE
def is_valid_status(value: Any) -> bool:
    """Return True if value is a lifecycle status in any casing."""
    return isinstance(value, str) and _normalize_enum(value) in STATUS_VALUES


# PUBLIC_INTERFACE
def is_valid_bug_id(value: Any) -> bool:
    """Return True if value has the shape of a store-assigned identifier."""
    return isinstance(value, str) and _BUG_ID_RE.fullmatch(value) is not None


# PUBLIC_INTERFACE
def sanitize_string(value: Any) -> str:
    """Trim and strip angle brackets; non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return _ANGLE_BRACKETS_RE.sub("", value.strip())


def _normalize_tags(tags: Any) -> Any:
    if tags is None:
        return []
    if not isinstance(tags, (list, tuple)):
        return tags
    normalized: List[Any] = []
    for tag in tags:
        if isinstance(tag, str):
            tag = tag.strip()
            if not tag:
                continue
        normalized.append(tag)
    return normalized


# PUBLIC_INTERFACE
def normalize_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize a (partial) payload keyed by attribute or wire field names.

    - Strings are trimmed; blank optional strings become None
    - severity/status are lowercased
    - tags are trimmed and blank tags dropped; None becomes []

    Unknown keys are kept as-is so the validator can report them. Values of
    the wrong type are left untouched for the same reason.
    """
    normalized: Dict[str, Any] = {}
    for key, value in payload.items():
        name = field_name(key) or key
        if name == "tags":
            value = _normalize_tags(value)
        elif isinstance(value, str):
            value = value.strip()
            if name in _ENUM_FIELDS:
                value = value.lower()
            elif name in _OPTIONAL_TEXT_FIELDS and not value:
                value = None
        normalized[name] = value
    return normalized


def _check_text(name: str, value: Any, violations: List[FieldViolation]) -> None:
    rule = _TEXT_RULES[name]
    field = wire_name(name)
    if value is None:
        if rule.required_message:
            violations.append(FieldViolation(field, rule.required_message))
        return
    if not isinstance(value, str):
        violations.append(FieldViolation(field, f"{field} must be a string"))
        return
    if rule.required_message and not value:
        violations.append(FieldViolation(field, rule.required_message))
    elif len(value) < rule.min_length:
        violations.append(FieldViolation(field, rule.min_message))
    elif len(value) > rule.max_length:
        violations.append(FieldViolation(field, rule.max_message))


def _check_enum(name: str, value: Any, violations: List[FieldViolation]) -> None:
    if not isinstance(value, str) or value not in _ENUM_VALUES[name]:
        violations.append(FieldViolation(name, _ENUM_MESSAGES[name]))


def _check_tags(value: Any, violations: List[FieldViolation]) -> None:
    if not isinstance(value, list):
        violations.append(FieldViolation("tags", "Tags must be an array"))
        return
    for index, tag in enumerate(value):
        if not isinstance(tag, str):
            violations.append(FieldViolation(f"tags[{index}]", "Each tag must be a string"))
        elif len(tag) > TAG_MAX_LENGTH:
            violations.append(
                FieldViolation(f"tags[{index}]", f"Each tag cannot exceed {TAG_MAX_LENGTH} characters")
            )


# PUBLIC_INTERFACE
def collect_violations(record: Mapping[str, Any], required: bool = True) -> List[FieldViolation]:
    """
    Check a normalized record and return every violation found.

    When ``required`` is False only the fields present in ``record`` are
    checked (partial update); otherwise missing required fields are reported
    as well. Unknown and read-only keys are always reported.
    """
    violations: List[FieldViolation] = []
    for key in record:
        if key in _READ_ONLY_FIELDS:
            violations.append(FieldViolation(wire_name(key), "Field is read-only"))
        elif key not in WRITABLE_FIELDS:
            violations.append(FieldViolation(key, "Unknown field"))

    for name in WRITABLE_FIELDS:
        if name not in record and not required:
            continue
        value = record.get(name)
        if name in _TEXT_RULES:
            _check_text(name, value, violations)
        elif name in _ENUM_FIELDS:
            _check_enum(name, value, violations)
        elif name == "tags":
            _check_tags(value, violations)
    return violations


def _with_defaults(data: Dict[str, Any]) -> Dict[str, Any]:
    record = dict(data)
    if record.get("severity") is None:
        record["severity"] = DEFAULT_SEVERITY
    if record.get("status") is None:
        record["status"] = DEFAULT_STATUS
    record.setdefault("assigned_to", None)
    record.setdefault("reproduction_steps", None)
    record.setdefault("tags", [])
    return record


def _writable(record: Mapping[str, Any]) -> Dict[str, Any]:
    return {name: record.get(name) for name in WRITABLE_FIELDS}


# PUBLIC_INTERFACE
def validate_create(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize and validate a create payload.

    Returns the writable fields with defaults applied (severity=medium,
    status=open). Raises ValidationError listing every violation.
    """
    record = _with_defaults(normalize_payload(payload))
    violations = collect_violations(record, required=True)
    if violations:
        raise ValidationError(violations)
    return _writable(record)


# PUBLIC_INTERFACE
def validate_update(existing: Mapping[str, Any], changes: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate supplied fields, merge them over ``existing`` and re-validate.

    Returns the merged writable fields. Raises ValidationError listing every
    violation in the supplied fields, or in the merged record if the supplied
    fields are clean.
    """
    supplied = normalize_payload(changes)
    violations = collect_violations(supplied, required=False)
    if violations:
        raise ValidationError(violations)

    merged = {**_writable(existing), **supplied}
    violations = collect_violations(merged, required=True)
    if violations:
        raise ValidationError(violations)
    return merged
