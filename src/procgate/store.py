"""
procgate.store

Credential Store boundary consumed by the admission pipeline.

Responsibilities:
- Declare the lookup operations the gateway needs from durable storage.
- Define the small record types returned by those lookups.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from procgate.auth.models import CallerIdentity
from procgate.authz.models import PermissionGrant
from procgate.functions.definitions import FunctionDefinition


@dataclass(frozen=True, slots=True)
class ClientRecord:
    identity: CallerIdentity
    api_key: str | None = None
    secret_hash: str | None = None


@dataclass(frozen=True, slots=True)
class TokenRecord:
    id: int
    client: CallerIdentity | None
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class CredentialStore(Protocol):
    """
    Durable truth for clients, tokens, roles, permissions and function definitions.
    """

    async def find_client_by_key(self, api_key: str) -> ClientRecord | None: ...

    async def find_client_by_id(self, client_id: int) -> CallerIdentity | None: ...

    async def find_token(self, token: str) -> TokenRecord | None: ...

    async def touch_token(self, token_id: int) -> None: ...

    async def provision_delegated_client(
        self, *, api_key: str, name: str, rate_limit: int
    ) -> CallerIdentity: ...

    async def find_function_by_identifier(self, identifier: str) -> FunctionDefinition | None: ...

    async def find_active_function_by_identifier(
        self, identifier: str
    ) -> FunctionDefinition | None: ...

    async def list_active_function_identifiers(self) -> list[str]: ...

    async def find_roles_for_client(self, client_id: int) -> frozenset[int]: ...

    async def find_permissions_for_role(self, role_id: int) -> list[PermissionGrant]: ...

    async def find_client_ids_for_role(self, role_id: int) -> list[int]: ...


# --- Module Notes -----------------------------------------------------------
# `procgate.db.store.SqlCredentialStore` is the production implementation; tests use
# an in-memory fake with the same shape.
