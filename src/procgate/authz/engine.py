"""
procgate.authz.engine

Authorization Engine: RBAC decision for a resolved caller against a target.

Responsibilities:
- Short-circuit on an inactive caller, then on an inactive target.
- Resolve role grants through the Permission Cache, falling back to the Credential Store.
- Cache the per-(client, function) boolean outcome.

Deny is a normal boolean result; only store/infrastructure faults raise.
"""

from __future__ import annotations

from procgate.auth.models import CallerIdentity
from procgate.authz.models import (
    ACTION_EXECUTE,
    ACTIONS,
    RESOURCE_FUNCTION,
    RESOURCE_TYPES,
    PermissionGrant,
)
from procgate.cache.permissions import PermissionCache
from procgate.functions.definitions import FunctionDefinition
from procgate.observability.logging import get_logger
from procgate.store import CredentialStore

log = get_logger(__name__)


class AuthorizationEngine:
    def __init__(self, *, store: CredentialStore, cache: PermissionCache) -> None:
        self._store = store
        self._cache = cache

    async def authorize(
        self,
        identity: CallerIdentity,
        target: FunctionDefinition,
        action: str = ACTION_EXECUTE,
    ) -> bool:
        if not identity.is_active:
            log.warning("authorize_inactive_client", client_id=identity.id)
            return False
        if not target.is_active:
            log.warning("authorize_inactive_function", function_id=target.id)
            return False

        cacheable = action == ACTION_EXECUTE
        if cacheable:
            cached = await self._cache.get_function_access(identity.id, target.id)
            if cached is not None:
                return cached

        allowed = await self._holds(identity, RESOURCE_FUNCTION, target.id, action)
        if cacheable:
            await self._cache.put_function_access(identity.id, target.id, allowed)
        log.debug(
            "authorize_decision", client_id=identity.id, function_id=target.id, allowed=allowed
        )
        return allowed

    async def check_permission(
        self,
        identity: CallerIdentity,
        resource_type: str,
        resource_id: int | None = None,
        action: str = ACTION_EXECUTE,
    ) -> bool:
        """
        Generic RBAC check for non-function resources (clients, roles, logs).
        """
        if resource_type not in RESOURCE_TYPES:
            log.warning("unknown_resource_type", resource_type=resource_type)
            return False
        if action not in ACTIONS:
            log.warning("unknown_action", action=action)
            return False
        if not identity.is_active:
            return False
        return await self._holds(identity, resource_type, resource_id, action)

    async def _holds(
        self,
        identity: CallerIdentity,
        resource_type: str,
        resource_id: int | None,
        action: str,
    ) -> bool:
        for role_id in sorted(await self._role_ids(identity)):
            grants = await self._role_grants(role_id)
            if any(g.matches(resource_type, resource_id, action) for g in grants):
                return True
        return False

    async def _role_ids(self, identity: CallerIdentity) -> frozenset[int]:
        cached = await self._cache.get_client_roles(identity.id)
        if cached is not None:
            return cached
        role_ids = await self._store.find_roles_for_client(identity.id)
        await self._cache.put_client_roles(identity.id, role_ids)
        return role_ids

    async def _role_grants(self, role_id: int) -> list[PermissionGrant]:
        cached = await self._cache.get_role_permissions(role_id)
        if cached is not None:
            return cached
        grants = await self._store.find_permissions_for_role(role_id)
        await self._cache.put_role_permissions(role_id, grants)
        return grants


# --- Module Notes -----------------------------------------------------------
# Exact-id and wildcard (NULL id) grants are equivalent here; any match allows.
