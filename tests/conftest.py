"""
tests.conftest

Shared fakes and builders for the gateway tests.

Responsibilities:
- In-memory `CredentialStore`, procedure executor, and audit sink.
- A controllable clock for rate windows and cache expiry.
- A fully wired pipeline over in-process backends.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import httpx
import pytest

from procgate.audit import AuditEvent, RequestOutcome, SecurityRecord
from procgate.auth.dispatcher import AuthenticationDispatcher
from procgate.auth.jwt import JwtConfig
from procgate.auth.models import CallerIdentity, ClientType
from procgate.auth.providers import IdentityProviderClient
from procgate.auth.strategies import (
    ApiKeyValidator,
    BearerTokenValidator,
    CredentialSource,
    DelegatedTokenValidator,
)
from procgate.authz.engine import AuthorizationEngine
from procgate.authz.models import PermissionGrant
from procgate.cache.backend import InMemoryCacheBackend
from procgate.cache.configuration import ConfigurationCache
from procgate.cache.coordinator import CacheCoordinator
from procgate.cache.permissions import PermissionCache
from procgate.execution import DownstreamError
from procgate.functions.definitions import FunctionDefinition, ParameterSpec
from procgate.functions.resolver import ConfigurationResolver
from procgate.gateway.pipeline import GatewayPipeline, GatewayRequest, RateDefaults
from procgate.ratelimit.limiter import RateLimiter
from procgate.ratelimit.store import InMemoryRateWindowStore
from procgate.store import ClientRecord, TokenRecord

JWT_CFG = JwtConfig(alg="HS256", issuer="procgate-test", secret="test-secret")


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_identity(
    client_id: int = 1,
    *,
    name: str | None = None,
    is_active: bool = True,
    client_type: ClientType = ClientType.api_key,
    rate_limit: int | str = 60,
    rate_window: int = 60,
) -> CallerIdentity:
    return CallerIdentity(
        id=client_id,
        name=name or f"client-{client_id}",
        is_active=is_active,
        client_type=client_type,
        rate_limit=rate_limit,
        rate_window=rate_window,
    )


def make_definition(
    function_id: int = 10,
    identifier: str = "get_orders",
    *,
    is_active: bool = True,
    parameters: tuple[ParameterSpec, ...] | None = None,
    **kwargs: Any,
) -> FunctionDefinition:
    if parameters is None:
        parameters = (
            ParameterSpec(
                name="customer_id",
                data_type="integer",
                sp_parameter_name="p_customer_id",
                is_required=True,
                validation_rules=("min:1",),
                position=0,
            ),
            ParameterSpec(
                name="status",
                data_type="string",
                sp_parameter_name="p_status",
                default_value="open",
                validation_rules=("in:open,closed",),
                position=1,
            ),
        )
    return FunctionDefinition(
        id=function_id,
        name=identifier.replace("_", " ").title(),
        identifier=identifier,
        stored_procedure=f"sp_{identifier}",
        is_active=is_active,
        parameters=parameters,
        **kwargs,
    )


@dataclass
class FakeCredentialStore:
    clients: dict[int, ClientRecord] = field(default_factory=dict)
    tokens: dict[str, TokenRecord] = field(default_factory=dict)
    functions: dict[str, FunctionDefinition] = field(default_factory=dict)
    client_roles: dict[int, set[int]] = field(default_factory=dict)
    role_grants: dict[int, list[PermissionGrant]] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    touched: list[int] = field(default_factory=list)
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1000))

    def add_client(
        self,
        identity: CallerIdentity,
        *,
        api_key: str | None = None,
        secret_hash: str | None = None,
        roles: set[int] | None = None,
    ) -> CallerIdentity:
        self.clients[identity.id] = ClientRecord(
            identity=identity, api_key=api_key, secret_hash=secret_hash
        )
        self.client_roles[identity.id] = set(roles or ())
        return identity

    def add_function(self, definition: FunctionDefinition) -> FunctionDefinition:
        self.functions[definition.identifier] = definition
        return definition

    def grant(self, role_id: int, *grants: PermissionGrant) -> None:
        self.role_grants.setdefault(role_id, []).extend(grants)

    async def find_client_by_key(self, api_key: str) -> ClientRecord | None:
        self.calls.append("find_client_by_key")
        for record in self.clients.values():
            if record.api_key == api_key:
                return record
        return None

    async def find_client_by_id(self, client_id: int) -> CallerIdentity | None:
        self.calls.append("find_client_by_id")
        record = self.clients.get(client_id)
        return record.identity if record else None

    async def find_token(self, token: str) -> TokenRecord | None:
        self.calls.append("find_token")
        return self.tokens.get(token)

    async def touch_token(self, token_id: int) -> None:
        self.touched.append(token_id)

    async def provision_delegated_client(
        self, *, api_key: str, name: str, rate_limit: int
    ) -> CallerIdentity:
        self.calls.append("provision_delegated_client")
        identity = make_identity(
            next(self._ids), name=name, client_type=ClientType.oauth, rate_limit=rate_limit
        )
        self.add_client(identity, api_key=api_key)
        return identity

    async def find_function_by_identifier(self, identifier: str) -> FunctionDefinition | None:
        self.calls.append("find_function_by_identifier")
        return self.functions.get(identifier)

    async def find_active_function_by_identifier(
        self, identifier: str
    ) -> FunctionDefinition | None:
        self.calls.append("find_active_function_by_identifier")
        definition = self.functions.get(identifier)
        return definition if definition is not None and definition.is_active else None

    async def list_active_function_identifiers(self) -> list[str]:
        return sorted(k for k, d in self.functions.items() if d.is_active)

    async def find_roles_for_client(self, client_id: int) -> frozenset[int]:
        self.calls.append("find_roles_for_client")
        return frozenset(self.client_roles.get(client_id, ()))

    async def find_permissions_for_role(self, role_id: int) -> list[PermissionGrant]:
        self.calls.append("find_permissions_for_role")
        return list(self.role_grants.get(role_id, []))

    async def find_client_ids_for_role(self, role_id: int) -> list[int]:
        return sorted(cid for cid, roles in self.client_roles.items() if role_id in roles)


class FakeExecutor:
    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows if rows is not None else [{"order_id": 1}]
        self.error: DownstreamError | None = None
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def execute(
        self, definition: FunctionDefinition, params: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append((definition.identifier, params))
        if self.error is not None:
            raise self.error
        return {"data": self.rows}


class RecordingAuditSink:
    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    @property
    def outcomes(self) -> list[RequestOutcome]:
        return [e for e in self.events if isinstance(e, RequestOutcome)]

    @property
    def security(self) -> list[SecurityRecord]:
        return [e for e in self.events if isinstance(e, SecurityRecord)]


@dataclass
class Gateway:
    store: FakeCredentialStore
    pipeline: GatewayPipeline
    executor: FakeExecutor
    audit: RecordingAuditSink
    clock: FakeClock
    limiter: RateLimiter
    coordinator: CacheCoordinator
    configuration_cache: ConfigurationCache
    permission_cache: PermissionCache

    def request(
        self,
        function: str = "get_orders",
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        query: dict[str, str] | None = None,
    ) -> GatewayRequest:
        return GatewayRequest(
            request_id="req-1",
            function=function,
            params=params if params is not None else {"customer_id": 7},
            credentials=CredentialSource.of(headers or {}, query),
            ip_address="10.0.0.1",
            user_agent="pytest",
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeCredentialStore:
    return FakeCredentialStore()


@pytest.fixture
def gateway(store: FakeCredentialStore, clock: FakeClock) -> Gateway:
    backend = InMemoryCacheBackend(clock=clock)
    configuration_cache = ConfigurationCache(backend, ttl=3600)
    permission_cache = PermissionCache(backend, ttl=1800)
    resolver = ConfigurationResolver(cache=configuration_cache, store=store)
    authorizer = AuthorizationEngine(store=store, cache=permission_cache)
    limiter = RateLimiter(InMemoryRateWindowStore(clock=clock), clock=clock)
    rejecting = httpx.MockTransport(lambda request: httpx.Response(401))
    providers = IdentityProviderClient(providers={}, http=httpx.AsyncClient(transport=rejecting))
    dispatcher = AuthenticationDispatcher(
        [
            BearerTokenValidator(
                store=store, jwt_cfg=JWT_CFG, clock=lambda: datetime(2030, 1, 1)
            ),
            ApiKeyValidator(store=store),
            DelegatedTokenValidator(store=store, providers=providers, default_rate_limit=60),
        ]
    )
    executor = FakeExecutor()
    audit = RecordingAuditSink()
    pipeline = GatewayPipeline(
        dispatcher=dispatcher,
        resolver=resolver,
        authorizer=authorizer,
        limiter=limiter,
        executor=executor,
        audit=audit,
        rate_defaults=RateDefaults(budget=60, window=60),
        clock=clock,
    )
    coordinator = CacheCoordinator(
        configuration=configuration_cache,
        permissions=permission_cache,
        store=store,
        resolver=resolver,
    )
    return Gateway(
        store=store,
        pipeline=pipeline,
        executor=executor,
        audit=audit,
        clock=clock,
        limiter=limiter,
        coordinator=coordinator,
        configuration_cache=configuration_cache,
        permission_cache=permission_cache,
    )


# --- Module Notes -----------------------------------------------------------
# The fake store records call names so cache tests can assert what reached storage.
