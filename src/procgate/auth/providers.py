"""
procgate.auth.providers

HTTP client boundary for third-party identity providers (delegated authentication).

Responsibilities:
- Exchange a presented delegated token for the provider's user-info document.
- Apply the per-provider timeout from settings.
- Collapse every transport or protocol failure into "no identity" for the caller.
"""

from __future__ import annotations

from typing import Any

import httpx

from procgate.observability.logging import get_logger
from procgate.settings import DelegatedProviderSettings

log = get_logger(__name__)


class IdentityProviderClient:
    """
    Thin wrapper over a shared `httpx.AsyncClient`; the app owns the client lifecycle.
    """

    def __init__(
        self,
        *,
        providers: dict[str, DelegatedProviderSettings],
        http: httpx.AsyncClient,
    ) -> None:
        self._providers = providers
        self._http = http

    @property
    def provider_names(self) -> list[str]:
        # Insertion order of the settings mapping is the try-order without a hint.
        return list(self._providers)

    def has(self, provider: str) -> bool:
        return provider in self._providers

    async def fetch_user_info(self, provider: str, token: str) -> dict[str, Any] | None:
        cfg = self._providers.get(provider)
        if cfg is None:
            return None
        try:
            r = await self._http.get(
                cfg.user_info_url,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
                timeout=cfg.timeout,
            )
        except httpx.HTTPError as e:
            log.warning("identity_provider_unreachable", provider=provider, error=str(e))
            return None

        if not r.is_success:
            log.info("identity_provider_rejected", provider=provider, status=r.status_code)
            return None
        try:
            body = r.json()
        except ValueError:
            log.warning("identity_provider_bad_payload", provider=provider)
            return None
        return body if isinstance(body, dict) else None


# --- Module Notes -----------------------------------------------------------
# No retries: a failed exchange ends the authentication attempt, and the caller may
# simply retry the request.
