"""
procgate.auth.deps

FastAPI dependency functions for the operator (cache admin) surface.

Responsibilities:
- Convert an operator bearer token into a typed `Principal`.
- Enforce operator RBAC via reusable dependency factories.

Gateway callers never pass through here; they are handled by the Authentication Dispatcher.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from procgate.auth.jwt import JwtValidationError, decode_operator_token, operator_jwt_config
from procgate.auth.models import Principal
from procgate.settings import Settings, get_settings

_bearer = HTTPBearer(auto_error=False)


def get_operator(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Principal:
    if creds is None or not creds.credentials:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    try:
        payload = decode_operator_token(cfg=operator_jwt_config(settings), token=creds.credentials)
    except JwtValidationError as e:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    roles_raw = payload.get("roles", [])
    if not subject:
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token subject")
    if not isinstance(roles_raw, list):
        raise HTTPException(status_code=HTTP_401_UNAUTHORIZED, detail="Invalid token roles")

    return Principal(subject=subject, roles=frozenset(str(r) for r in roles_raw))


def require_roles(*required: str):
    required_set = frozenset(required)

    def _dep(principal: Principal = Depends(get_operator)) -> Principal:
        # admin bypasses role checks (break-glass for on-call).
        if principal.is_admin:
            return principal
        if not required_set.issubset(principal.roles):
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Insufficient role")
        return principal

    return _dep


# --- Module Notes -----------------------------------------------------------
# Operator tokens use their own secret and audience, so a leaked client token can
# never unlock cache administration.
