from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ..errors import FieldViolation, RecordNotFoundError, ValidationError
from ..query import SORT_ORDERS, ListQuery, parse_sort
from ..repositories import Repository, get_repository
from ..schemas import (
    BugCreate,
    BugDataEnvelope,
    BugListEnvelope,
    BugMessageEnvelope,
    BugUpdate,
    ErrorEnvelope,
    MessageEnvelope,
)
from ..utils import list_envelope, success_envelope
from ..validation import is_valid_bug_id

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/bugs",
    tags=["bugs"],
)

_NOT_FOUND = {404: {"model": ErrorEnvelope, "description": "Bug not found"}}
_INVALID = {400: {"model": ErrorEnvelope, "description": "Validation failed"}}


def _get_repo(repo: Repository = Depends(get_repository)) -> Repository:
    """
    Dependency wrapper for the store to keep signatures clean.
    """
    return repo


def _require_id(bug_id: str) -> str:
    # Malformed ids cannot exist in any store
    if not is_valid_bug_id(bug_id):
        raise RecordNotFoundError(bug_id)
    return bug_id


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=BugListEnvelope,
    summary="List Bugs",
    description=(
        "List bugs with optional filters and ordering.\n\n"
        "Query parameters:\n"
        "- status: open, in-progress, resolved, closed or all\n"
        "- severity: low, medium, high, critical or all\n"
        "- sort: field name, prefixed with '-' for descending (default -createdAt)\n"
        "- order: asc or desc (if provided, it overrides the direction in sort)\n\n"
        "Returns every matching bug; there is no pagination."
    ),
    responses=_INVALID,
)
def list_bugs(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    severity: Optional[str] = Query(None, description="Filter by severity"),
    sort: Optional[str] = Query("-createdAt", description="Sort field, '-' prefix for descending"),
    order: Optional[str] = Query(None, description="Override sort direction: 'asc' or 'desc'"),
    repo: Repository = Depends(_get_repo),
) -> BugListEnvelope:
    """
    List bugs matching the filters.
    """
    sort_by, sort_order = parse_sort(sort)
    if order:
        ord_norm = order.strip().lower()
        if ord_norm not in SORT_ORDERS:
            raise ValidationError([FieldViolation("order", "order must be 'asc' or 'desc'")])
        sort_order = ord_norm

    query = ListQuery(status=status_filter, severity=severity, sort_by=sort_by, sort_order=sort_order)
    items = repo.list(query)
    logger.info("Listed bugs", extra={"count": len(items)})
    return BugListEnvelope(**list_envelope(items))


# PUBLIC_INTERFACE
@router.get(
    "/{bug_id}",
    response_model=BugDataEnvelope,
    summary="Get Bug",
    description="Get a single bug by id.",
    responses=_NOT_FOUND,
)
def get_bug(bug_id: str, repo: Repository = Depends(_get_repo)) -> BugDataEnvelope:
    """
    Retrieve a single bug by its id.
    """
    item = repo.get(_require_id(bug_id))
    return BugDataEnvelope(**success_envelope(data=item))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=BugMessageEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create Bug",
    description="Create a bug. severity defaults to medium and status to open.",
    responses=_INVALID,
)
def create_bug(payload: BugCreate, repo: Repository = Depends(_get_repo)) -> BugMessageEnvelope:
    """
    Create a new bug.
    """
    created = repo.create(payload.changes())
    return BugMessageEnvelope(**success_envelope(data=created, message="Bug created successfully"))


# PUBLIC_INTERFACE
@router.put(
    "/{bug_id}",
    response_model=BugMessageEnvelope,
    summary="Update Bug",
    description=(
        "Merge the supplied fields over the stored bug and revalidate the result. "
        "Any status may move to any other status."
    ),
    responses={**_INVALID, **_NOT_FOUND},
)
def update_bug(bug_id: str, payload: BugUpdate, repo: Repository = Depends(_get_repo)) -> BugMessageEnvelope:
    """
    Update a bug; omitted fields are left unchanged.
    """
    updated = repo.update(_require_id(bug_id), payload.changes())
    return BugMessageEnvelope(**success_envelope(data=updated, message="Bug updated successfully"))


# PUBLIC_INTERFACE
@router.delete(
    "/{bug_id}",
    response_model=MessageEnvelope,
    summary="Delete Bug",
    description="Permanently delete a bug by id.",
    responses=_NOT_FOUND,
)
def delete_bug(bug_id: str, repo: Repository = Depends(_get_repo)) -> MessageEnvelope:
    """
    Delete a bug. Deleting an id that no longer exists returns 404.
    """
    repo.delete(_require_id(bug_id))
    return MessageEnvelope(**success_envelope(message="Bug deleted successfully"))
