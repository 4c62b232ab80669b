from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Union


# PUBLIC_INTERFACE
def success_envelope(
    data: Any = None,
    message: Optional[str] = None,
    count: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Build a success envelope. Only the keys that were provided are included.

    Returns:
        Dict with key success=True plus any of data, message, count.
    """
    envelope: Dict[str, Any] = {"success": True}
    if message is not None:
        envelope["message"] = message
    if count is not None:
        envelope["count"] = int(count)
    if data is not None:
        envelope["data"] = data
    return envelope


# PUBLIC_INTERFACE
def list_envelope(items: Union[Sequence[Any], Iterable[Any]]) -> Dict[str, Any]:
    """Build the list envelope: success, count and the materialized items."""
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    return success_envelope(data=materialized, count=len(materialized))


# PUBLIC_INTERFACE
def error_envelope(
    message: str,
    errors: Optional[Iterable[Any]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Build a failure envelope. ``errors`` items must provide ``to_dict()``."""
    envelope: Dict[str, Any] = {"success": False, "message": message}
    if errors is not None:
        envelope["errors"] = [e.to_dict() for e in errors]
    envelope.update(extra)
    return envelope
