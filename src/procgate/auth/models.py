"""
procgate.auth.models

Auth domain models.

Responsibilities:
- Define the resolved caller identity (`CallerIdentity`) handed to later stages.
- Define the credential material extracted from a request (`CredentialMaterial`).
- Define the operator identity (`Principal`) used by the cache admin surface.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ClientType(enum.StrEnum):
    api_key = "api_key"
    bearer_token = "bearer_token"
    oauth = "oauth"


class CredentialScheme(enum.StrEnum):
    bearer = "bearer"
    api_key = "api_key"
    delegated = "delegated"


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """
    Authenticated caller. Request-scoped; the pipeline never persists it.
    """

    id: int
    name: str
    is_active: bool
    client_type: ClientType
    # Absolute count or "count/period" shorthand; parsed at admission time.
    rate_limit: int | str
    rate_window: int
    role_ids: frozenset[int] = frozenset()

    @property
    def rate_key(self) -> str:
        return f"client:{self.id}"


@dataclass(frozen=True, slots=True)
class CredentialMaterial:
    scheme: CredentialScheme
    value: str
    secret: str | None = None
    provider: str | None = None

    def __repr__(self) -> str:
        # Never render raw credentials into logs or tracebacks.
        return f"CredentialMaterial(scheme={self.scheme.value!r}, value='***')"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Operator identity decoded from an operator JWT.
    """

    subject: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


# --- Module Notes -----------------------------------------------------------
# Keep these models free of ORM imports; the DB layer maps rows onto them.
