"""
Async HTTP client for the bug tracker API.

Usage:
    from bugtracker.client import BugService

    async with BugService("http://localhost:5000") as service:
        bugs = await service.list_bugs(status="open")

Every response envelope is parsed into typed models; failures are raised as
the shared error taxonomy (ValidationError, RecordNotFoundError,
BackendUnreachableError, InternalError). No request is ever retried.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..errors import (
    BackendUnreachableError,
    BugTrackerError,
    FieldViolation,
    InternalError,
    RecordNotFoundError,
    ValidationError,
)
from ..models import wire_name
from ..schemas import BugRecord, ErrorEnvelope, HealthStatus
from ..settings import get_settings

logger = logging.getLogger(__name__)

BUGS_PATH = "/api/bugs"
HEALTH_PATH = "/health"


def to_wire_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Accept attribute or wire field names and send wire (camelCase) names."""
    return {wire_name(key): value for key, value in payload.items()}


class BugService:
    """
    Thin async wrapper around the bug endpoints.

    Either pass ``base_url`` (a client is created and owned by the service)
    or an existing ``httpx.AsyncClient`` whose base_url points at the API.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout or settings.client_timeout_seconds),
        )

    async def __aenter__(self) -> "BugService":
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.error("%s %s failed: %s", method, path, exc.__class__.__name__)
            raise BackendUnreachableError(
                f"Backend server is not accessible at {self.base_url} ({exc.__class__.__name__})"
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.is_success:
            if not isinstance(body, dict):
                raise InternalError(f"Malformed response from {method} {path}")
            return body
        raise self._error_from_response(response.status_code, body)

    @staticmethod
    def _error_from_response(status_code: int, body: Any) -> BugTrackerError:
        envelope: Optional[ErrorEnvelope] = None
        if isinstance(body, dict):
            try:
                envelope = ErrorEnvelope.model_validate(body)
            except PydanticValidationError:
                envelope = None

        if status_code == 400:
            violations = [FieldViolation(e.field, e.message) for e in (envelope.errors or [])] if envelope else []
            return ValidationError(violations, envelope.message if envelope else "Validation failed")
        if status_code == 404:
            return RecordNotFoundError(message=envelope.message if envelope else "Bug not found")
        message = envelope.message if envelope else f"Request failed with status code {status_code}"
        return InternalError(message)

    @staticmethod
    def _parse(model, data: Any, what: str):
        try:
            return model.model_validate(data)
        except PydanticValidationError as exc:
            raise InternalError(f"Malformed {what} in response") from exc

    # PUBLIC_INTERFACE
    async def health_check(self) -> HealthStatus:
        """Probe /health. Any failure is reported as BackendUnreachableError."""
        try:
            body = await self._request("GET", HEALTH_PATH)
            return self._parse(HealthStatus, body, "health status")
        except BugTrackerError as exc:
            raise BackendUnreachableError(
                f"Backend server is not accessible. Please ensure it's running at {self.base_url}."
            ) from exc

    # PUBLIC_INTERFACE
    async def list_bugs(
        self,
        status: Optional[str] = None,
        severity: Optional[str] = None,
        sort: Optional[str] = None,
    ) -> List[BugRecord]:
        params = {k: v for k, v in (("status", status), ("severity", severity), ("sort", sort)) if v}
        body = await self._request("GET", BUGS_PATH, params=params)
        return [self._parse(BugRecord, item, "bug") for item in body.get("data") or []]

    # PUBLIC_INTERFACE
    async def get_bug(self, bug_id: str) -> BugRecord:
        body = await self._request("GET", f"{BUGS_PATH}/{bug_id}")
        return self._parse(BugRecord, body.get("data"), "bug")

    # PUBLIC_INTERFACE
    async def create_bug(self, payload: Mapping[str, Any]) -> BugRecord:
        body = await self._request("POST", BUGS_PATH, json=to_wire_payload(payload))
        return self._parse(BugRecord, body.get("data"), "bug")

    # PUBLIC_INTERFACE
    async def update_bug(self, bug_id: str, payload: Mapping[str, Any]) -> BugRecord:
        body = await self._request("PUT", f"{BUGS_PATH}/{bug_id}", json=to_wire_payload(payload))
        return self._parse(BugRecord, body.get("data"), "bug")

    # PUBLIC_INTERFACE
    async def delete_bug(self, bug_id: str) -> None:
        await self._request("DELETE", f"{BUGS_PATH}/{bug_id}")
