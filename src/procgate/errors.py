"""
procgate.errors

Closed error taxonomy shared by every pipeline stage.

Responsibilities:
- Enumerate the failure kinds a request can end in, with their HTTP status.
- Carry a structured failure record (`Failure`) between stages.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class ErrorKind(enum.StrEnum):
    # Enum values are the client-facing error codes; treat as stable API contract.
    authentication_required = "AUTHENTICATION_REQUIRED"
    invalid_credentials = "INVALID_CREDENTIALS"
    function_not_found = "FUNCTION_NOT_FOUND"
    function_disabled = "FUNCTION_DISABLED"
    permission_denied = "PERMISSION_DENIED"
    validation_error = "VALIDATION_ERROR"
    rate_limit_exceeded = "RATE_LIMIT_EXCEEDED"
    # Malformed server-side definitions surface to callers as INTERNAL_ERROR.
    configuration_invalid = "CONFIGURATION_INVALID"
    internal_error = "INTERNAL_ERROR"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS[self]

    @property
    def public_code(self) -> str:
        if self is ErrorKind.configuration_invalid:
            return ErrorKind.internal_error.value
        return self.value


_HTTP_STATUS: dict[ErrorKind, int] = {
    ErrorKind.authentication_required: 401,
    ErrorKind.invalid_credentials: 401,
    ErrorKind.function_not_found: 404,
    ErrorKind.function_disabled: 403,
    ErrorKind.permission_denied: 403,
    ErrorKind.validation_error: 400,
    ErrorKind.rate_limit_exceeded: 429,
    ErrorKind.configuration_invalid: 500,
    ErrorKind.internal_error: 500,
}


@dataclass(frozen=True, slots=True)
class Failure:
    """
    Structured failure produced by a stage; rendered into the error envelope.

    `status` overrides the kind's default status (used for mapped downstream errors).
    """

    kind: ErrorKind
    message: str
    details: dict[str, Any] | None = None
    status: int | None = None
    code: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def http_status(self) -> int:
        return self.status if self.status is not None else self.kind.http_status

    @property
    def error_code(self) -> str:
        return self.code or self.kind.public_code


# --- Module Notes -----------------------------------------------------------
# Only infrastructure faults are raised as exceptions; expected outcomes (bad
# credential, unknown function, quota exhausted) are returned as `Failure` values.
