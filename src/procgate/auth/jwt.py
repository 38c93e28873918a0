"""
procgate.auth.jwt

JWT issuing and validation helpers.

Responsibilities:
- Issue and verify self-describing client bearer tokens (`client_id` claim).
- Issue and verify operator tokens (`sub` + `roles`, audience-bound) for the cache admin surface.

Note:
- HS256 with a shared secret; an RS256/JWKS deployment only changes `JwtConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from procgate.settings import Settings


@dataclass(frozen=True, slots=True)
class JwtConfig:
    alg: str
    issuer: str
    secret: str
    # Client tokens are not audience-bound; operator tokens are.
    audience: str | None = None


class JwtValidationError(Exception):
    pass


def client_jwt_config(settings: Settings) -> JwtConfig:
    return JwtConfig(alg=settings.jwt_alg, issuer=settings.jwt_issuer, secret=settings.jwt_secret)


def operator_jwt_config(settings: Settings) -> JwtConfig:
    return JwtConfig(
        alg=settings.jwt_alg,
        issuer=settings.jwt_issuer,
        secret=settings.operator_jwt_secret,
        audience=settings.operator_jwt_audience,
    )


def _encode(cfg: JwtConfig, claims: dict[str, Any], ttl: timedelta) -> str:
    now = datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        **claims,
    }
    if cfg.audience is not None:
        payload["aud"] = cfg.audience
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def _decode(cfg: JwtConfig, token: str, required: list[str]) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={"require": ["exp", "iat", "iss", *required]},
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


def issue_client_token(
    *, cfg: JwtConfig, client_id: int, ttl: timedelta = timedelta(hours=24)
) -> str:
    return _encode(cfg, {"sub": str(client_id), "client_id": client_id}, ttl)


def decode_client_token(*, cfg: JwtConfig, token: str) -> int:
    """
    Verify signature, issuer and expiry; return the `client_id` claim.
    """
    payload = _decode(cfg, token, ["client_id"])
    client_id = payload.get("client_id")
    if isinstance(client_id, bool) or not isinstance(client_id, (int, str)):
        raise JwtValidationError("client_id claim must be an integer")
    try:
        return int(client_id)
    except ValueError as e:
        raise JwtValidationError("client_id claim must be an integer") from e


def issue_operator_token(
    *,
    cfg: JwtConfig,
    subject: str,
    roles: list[str],
    ttl: timedelta = timedelta(hours=1),
) -> str:
    return _encode(cfg, {"sub": subject, "roles": roles}, ttl)


def decode_operator_token(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    return _decode(cfg, token, ["aud", "sub"])


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by:
# - `api/routers/dev_auth.py` (dev convenience for both token kinds)
# - tests that exercise the bearer strategy and the operator routes
