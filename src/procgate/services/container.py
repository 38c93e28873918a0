"""
procgate.services.container

Composition of the gateway components.

Responsibilities:
- Choose Redis or in-process backends for the caches and rate windows.
- Build the credential store, resolver, authorization engine, limiter, and coordinator.
- Register the authentication strategies in priority order (bearer, api key, delegated).
- Close every client it opened on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from procgate.audit import CompositeAuditSink, DatabaseAuditSink, StructlogAuditSink
from procgate.auth.dispatcher import AuthenticationDispatcher
from procgate.auth.jwt import client_jwt_config
from procgate.auth.providers import IdentityProviderClient
from procgate.auth.strategies import ApiKeyValidator, BearerTokenValidator, DelegatedTokenValidator
from procgate.authz.engine import AuthorizationEngine
from procgate.cache.backend import CacheBackend, InMemoryCacheBackend, RedisCacheBackend
from procgate.cache.configuration import ConfigurationCache
from procgate.cache.coordinator import CacheCoordinator
from procgate.cache.permissions import PermissionCache
from procgate.db.session import create_engine
from procgate.db.store import SqlCredentialStore
from procgate.execution import ProcedureExecutor, SqlProcedureExecutor
from procgate.functions.resolver import ConfigurationResolver
from procgate.gateway.pipeline import GatewayPipeline, RateDefaults
from procgate.observability.logging import get_logger
from procgate.ratelimit.limiter import RateLimiter
from procgate.ratelimit.store import (
    InMemoryRateWindowStore,
    RateWindowStore,
    RedisRateWindowStore,
)
from procgate.settings import Settings

log = get_logger(__name__)


@dataclass(slots=True)
class GatewayServices:
    store: SqlCredentialStore
    resolver: ConfigurationResolver
    authorizer: AuthorizationEngine
    limiter: RateLimiter
    coordinator: CacheCoordinator
    pipeline: GatewayPipeline
    http: httpx.AsyncClient
    redis_client: redis.Redis | None = None
    executor_engine: AsyncEngine | None = None

    async def aclose(self) -> None:
        await self.http.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()
        if self.executor_engine is not None:
            await self.executor_engine.dispose()


def _redis_client(url: str) -> redis.Redis:
    return redis.from_url(
        url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_timeout=5,
        health_check_interval=30,
    )


def build_services(
    settings: Settings,
    *,
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
    executor: ProcedureExecutor | None = None,
    http: httpx.AsyncClient | None = None,
) -> GatewayServices:
    redis_client: redis.Redis | None = None
    backend: CacheBackend
    windows: RateWindowStore
    if settings.redis_url:
        # One connection pool serves both the caches and the rate windows.
        redis_client = _redis_client(settings.redis_url)
        backend = RedisCacheBackend(redis_client)
        windows = RedisRateWindowStore(redis_client)
    else:
        log.warning("redis_not_configured", detail="caches and rate windows are process-local")
        backend = InMemoryCacheBackend()
        windows = InMemoryRateWindowStore()

    store = SqlCredentialStore(session_factory)
    configuration_cache = ConfigurationCache(backend, ttl=settings.configuration_cache_ttl)
    permission_cache = PermissionCache(backend, ttl=settings.permission_cache_ttl)
    resolver = ConfigurationResolver(cache=configuration_cache, store=store)
    authorizer = AuthorizationEngine(store=store, cache=permission_cache)
    limiter = RateLimiter(windows, prefix=settings.rate_limit_prefix)
    coordinator = CacheCoordinator(
        configuration=configuration_cache,
        permissions=permission_cache,
        store=store,
        resolver=resolver,
        warmup_functions=settings.warmup_functions,
    )

    http = http or httpx.AsyncClient()
    providers = IdentityProviderClient(providers=settings.delegated_providers, http=http)
    dispatcher = AuthenticationDispatcher(
        [
            BearerTokenValidator(store=store, jwt_cfg=client_jwt_config(settings)),
            ApiKeyValidator(store=store),
            DelegatedTokenValidator(
                store=store,
                providers=providers,
                default_rate_limit=settings.delegated_default_rate_limit,
            ),
        ]
    )

    executor_engine: AsyncEngine | None = None
    if executor is None:
        if settings.executor_database_url:
            executor_engine = create_engine(settings, settings.executor_database_url)
            executor = SqlProcedureExecutor(executor_engine)
        else:
            executor = SqlProcedureExecutor(engine)

    pipeline = GatewayPipeline(
        dispatcher=dispatcher,
        resolver=resolver,
        authorizer=authorizer,
        limiter=limiter,
        executor=executor,
        audit=CompositeAuditSink([StructlogAuditSink(), DatabaseAuditSink(session_factory)]),
        rate_defaults=RateDefaults(
            budget=settings.rate_limit_default, window=settings.rate_limit_window
        ),
        debug=settings.debug,
    )
    return GatewayServices(
        store=store,
        resolver=resolver,
        authorizer=authorizer,
        limiter=limiter,
        coordinator=coordinator,
        pipeline=pipeline,
        http=http,
        redis_client=redis_client,
        executor_engine=executor_engine,
    )


# --- Module Notes -----------------------------------------------------------
# The main engine is owned by the app lifespan; only a dedicated executor engine
# is disposed here.
