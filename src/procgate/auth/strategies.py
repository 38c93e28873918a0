"""
procgate.auth.strategies

Credential validation strategies selected by the Authentication Dispatcher.

Responsibilities:
- Declare the `CredentialValidator` capability (matches / extract / validate).
- Bearer: self-describing JWT first, then opaque token lookup.
- API key: exact lookup, key-kind check, optional bcrypt secret.
- Delegated: third-party user-info exchange with first-sight auto-provisioning.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from procgate.auth.jwt import JwtConfig, JwtValidationError, decode_client_token
from procgate.auth.models import CallerIdentity, ClientType, CredentialMaterial, CredentialScheme
from procgate.auth.providers import IdentityProviderClient
from procgate.auth.secrets import verify_secret
from procgate.errors import ErrorKind
from procgate.observability.logging import get_logger
from procgate.results import Err, Ok, Result, err
from procgate.store import CredentialStore

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CredentialSource:
    """
    Credential-bearing parts of a request. Header names are lower-cased.
    """

    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def of(
        cls, headers: Mapping[str, str], query: Mapping[str, str] | None = None
    ) -> CredentialSource:
        return cls(
            headers={k.lower(): v for k, v in headers.items()},
            query=dict(query or {}),
        )

    def authorization(self, scheme: str) -> str | None:
        raw = self.headers.get("authorization")
        if raw is None:
            return None
        prefix, _, rest = raw.partition(" ")
        if prefix.lower() != scheme.lower():
            return None
        return rest.strip()


class CredentialValidator(Protocol):
    scheme: CredentialScheme

    def matches(self, source: CredentialSource) -> bool: ...

    def extract(self, source: CredentialSource) -> CredentialMaterial: ...

    async def validate(self, material: CredentialMaterial) -> Result[CallerIdentity]: ...


def _invalid(message: str) -> Err:
    return err(ErrorKind.invalid_credentials, message)


def _missing(message: str) -> Err:
    return err(ErrorKind.authentication_required, message)


class BearerTokenValidator:
    scheme = CredentialScheme.bearer

    def __init__(
        self,
        *,
        store: CredentialStore,
        jwt_cfg: JwtConfig,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._store = store
        self._jwt_cfg = jwt_cfg
        self._clock = clock

    def matches(self, source: CredentialSource) -> bool:
        return source.authorization("Bearer") is not None

    def extract(self, source: CredentialSource) -> CredentialMaterial:
        return CredentialMaterial(scheme=self.scheme, value=source.authorization("Bearer") or "")

    async def validate(self, material: CredentialMaterial) -> Result[CallerIdentity]:
        if not material.value:
            return _missing("Bearer token is empty")

        try:
            client_id = decode_client_token(cfg=self._jwt_cfg, token=material.value)
        except JwtValidationError as e:
            log.debug("bearer_not_jwt", reason=str(e))
            return await self._validate_opaque(material.value)

        identity = await self._store.find_client_by_id(client_id)
        if identity is None:
            return _invalid("Token subject does not exist")
        if not identity.is_active:
            return _invalid("Client is disabled")
        return Ok(identity)

    async def _validate_opaque(self, token: str) -> Result[CallerIdentity]:
        record = await self._store.find_token(token)
        if record is None:
            return _invalid("Invalid token")
        if record.is_expired(self._clock()):
            return _invalid("Token has expired")
        if record.client is None or not record.client.is_active:
            return _invalid("Client is disabled")
        await self._store.touch_token(record.id)
        return Ok(record.client)


class ApiKeyValidator:
    scheme = CredentialScheme.api_key

    def __init__(self, *, store: CredentialStore) -> None:
        self._store = store

    def matches(self, source: CredentialSource) -> bool:
        return bool(source.headers.get("x-api-key") or source.query.get("api_key"))

    def extract(self, source: CredentialSource) -> CredentialMaterial:
        value = source.headers.get("x-api-key") or source.query.get("api_key") or ""
        return CredentialMaterial(
            scheme=self.scheme,
            value=value,
            secret=source.headers.get("x-api-secret") or None,
        )

    async def validate(self, material: CredentialMaterial) -> Result[CallerIdentity]:
        if not material.value:
            return _missing("API key is empty")

        record = await self._store.find_client_by_key(material.value)
        if record is None:
            return _invalid("Invalid API key")
        identity = record.identity
        if not identity.is_active:
            return _invalid("Client is disabled")
        # Keys of delegated/bearer clients are not usable as API keys.
        if identity.client_type is not ClientType.api_key:
            return _invalid("Client does not support API key authentication")

        if material.secret is not None:
            if not record.secret_hash:
                return _invalid("Invalid API secret")
            # bcrypt is deliberately slow; keep it off the event loop.
            ok = await asyncio.to_thread(verify_secret, material.secret, record.secret_hash)
            if not ok:
                return _invalid("Invalid API secret")
        return Ok(identity)


class DelegatedTokenValidator:
    scheme = CredentialScheme.delegated

    def __init__(
        self,
        *,
        store: CredentialStore,
        providers: IdentityProviderClient,
        default_rate_limit: int,
    ) -> None:
        self._store = store
        self._providers = providers
        self._default_rate_limit = default_rate_limit

    def matches(self, source: CredentialSource) -> bool:
        return source.authorization("OAuth") is not None

    def extract(self, source: CredentialSource) -> CredentialMaterial:
        return CredentialMaterial(
            scheme=self.scheme,
            value=source.authorization("OAuth") or "",
            provider=source.headers.get("x-auth-provider") or None,
        )

    async def validate(self, material: CredentialMaterial) -> Result[CallerIdentity]:
        if not material.value:
            return _missing("Delegated token is empty")

        if material.provider is not None:
            if not self._providers.has(material.provider):
                return _invalid(f"Unknown identity provider '{material.provider}'")
            candidates = [material.provider]
        else:
            candidates = self._providers.provider_names

        last: Err = _invalid("Delegated token is invalid")
        for provider in candidates:
            result = await self._validate_with(provider, material.value)
            if isinstance(result, Ok):
                return result
            last = result
        return last

    async def _validate_with(self, provider: str, token: str) -> Result[CallerIdentity]:
        info = await self._providers.fetch_user_info(provider, token)
        if info is None:
            return _invalid("Delegated token is invalid or expired")

        # `id` wins even when falsy (0 is a valid provider id).
        external_id = info.get("id")
        if external_id is None:
            external_id = info.get("sub")
        if external_id is None or external_id == "":
            return _invalid("Identity provider returned no user id")

        synthetic_key = f"oauth_{provider}_{external_id}"
        record = await self._store.find_client_by_key(synthetic_key)
        if record is not None:
            if not record.identity.is_active:
                return _invalid("Client is disabled")
            return Ok(record.identity)

        name = info.get("name") or info.get("email") or f"OAuth User {external_id}"
        identity = await self._store.provision_delegated_client(
            api_key=synthetic_key,
            name=str(name),
            rate_limit=self._default_rate_limit,
        )
        log.info("delegated_client_provisioned", provider=provider, client_id=identity.id)
        return Ok(identity)


# --- Module Notes -----------------------------------------------------------
# Strategies never raise for a rejected credential; store/network faults propagate
# (except provider calls, which the provider client already folds into "invalid").
