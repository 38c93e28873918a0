"""
procgate.gateway.responses

Response envelopes returned by the gateway endpoint.

Responsibilities:
- Build the success envelope `{success, data, meta}`.
- Build the failure envelope `{success, error: {code, message, details?}, meta}`.
- Keep server-side defects opaque to callers unless debug is enabled.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from procgate.errors import ErrorKind, Failure

_OPAQUE_KINDS = frozenset({ErrorKind.internal_error, ErrorKind.configuration_invalid})
GENERIC_INTERNAL_MESSAGE = "An internal error occurred"


def _meta(request_id: str, execution_time: float | None) -> dict[str, Any]:
    meta: dict[str, Any] = {
        "request_id": request_id,
        "timestamp": datetime.now(tz=UTC).isoformat(),
    }
    if execution_time is not None:
        meta["execution_time"] = round(execution_time, 4)
    return meta


def success_envelope(data: Any, *, request_id: str, execution_time: float) -> dict[str, Any]:
    return {"success": True, "data": data, "meta": _meta(request_id, execution_time)}


def error_envelope(
    failure: Failure,
    *,
    request_id: str,
    execution_time: float | None,
    debug: bool = False,
) -> dict[str, Any]:
    # Mapped downstream errors carry their own code and message; keep those verbatim.
    opaque = failure.kind in _OPAQUE_KINDS and failure.code is None and not debug
    error: dict[str, Any] = {
        "code": failure.error_code,
        "message": GENERIC_INTERNAL_MESSAGE if opaque else failure.message,
    }
    if failure.details and not opaque:
        error["details"] = failure.details
    return {"success": False, "error": error, "meta": _meta(request_id, execution_time)}


# --- Module Notes -----------------------------------------------------------
# Rate-limit headers are attached by the pipeline, not here; envelopes are header-free.
