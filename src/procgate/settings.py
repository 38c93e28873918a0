"""
procgate.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secrets, provider credentials).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DelegatedProviderSettings(BaseModel):
    # Third-party identity provider used by the delegated (OAuth) strategy.
    user_info_url: str
    timeout: float = 10.0


class Settings(BaseSettings):
    """
    Enterprise pattern:
    - Strict env-driven configuration
    - Defaults safe for local dev
    - Single settings object injected across layers
    """

    model_config = SettingsConfigDict(
        env_prefix="PROCGATE_", env_nested_delimiter="__", case_sensitive=False
    )

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "procgate"
    log_level: str = "INFO"
    # Internal error details are only echoed to callers when debug is on.
    debug: bool = False

    api_host: str = "0.0.0.0"
    api_port: int = 8080
    # Proxies whose X-Forwarded-For is trusted for the audited caller address.
    forwarded_allow_ips: str = "127.0.0.1"

    # Client bearer tokens (self-describing tokens issued to API clients)
    jwt_alg: str = "HS256"
    jwt_issuer: str = "procgate"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)
    jwt_ttl_hours: int = 24

    # Operator tokens (cache administration surface)
    operator_jwt_audience: str = "procgate-ops"
    operator_jwt_secret: str = Field(default="dev-ops-secret-change-me", repr=False)
    # Token minting at /v1/dev/token; never served in prod even when set.
    dev_tokens_enabled: bool = False

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./procgate.db"
    # Database holding the stored procedures; defaults to `database_url`.
    executor_database_url: str | None = None

    # Shared state. Without a redis url the caches and rate windows are process-local.
    redis_url: str | None = None

    # Cache TTLs double as the staleness bound for cached active flags.
    configuration_cache_ttl: int = 3600
    permission_cache_ttl: int = 1800

    # Rate limiting
    rate_limit_default: int = 60
    rate_limit_window: int = 60
    rate_limit_prefix: str = "rate_limit:"

    # Delegated authentication
    delegated_providers: dict[str, DelegatedProviderSettings] = Field(default_factory=dict)
    delegated_default_rate_limit: int = 60

    # Functions preloaded by the cache warmup endpoint when none are named.
    warmup_functions: list[str] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Every TTL here is a deliberate eventual-consistency window: a client or function
# deactivated in the store may still be admitted until its cache entries expire,
# unless the admin write path calls the CacheCoordinator after committing.
