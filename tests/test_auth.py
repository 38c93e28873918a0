"""
tests.test_auth

Authentication Dispatcher and credential strategies.

Responsibilities:
- Strategy priority and the no-fallback rule.
- Bearer (JWT + opaque), API key (+ bcrypt secret), and delegated (provider exchange) paths.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import httpx
import pytest

from procgate.auth.dispatcher import AuthenticationDispatcher
from procgate.auth.jwt import issue_client_token
from procgate.auth.models import ClientType, CredentialMaterial, CredentialScheme
from procgate.auth.providers import IdentityProviderClient
from procgate.auth.secrets import hash_secret
from procgate.auth.strategies import (
    ApiKeyValidator,
    BearerTokenValidator,
    CredentialSource,
    DelegatedTokenValidator,
)
from procgate.errors import ErrorKind
from procgate.results import Err, Ok
from procgate.settings import DelegatedProviderSettings
from procgate.store import TokenRecord
from tests.conftest import JWT_CFG, FakeCredentialStore, make_identity

NOW = datetime(2030, 1, 1)


def _dispatcher(store: FakeCredentialStore, transport: httpx.MockTransport | None = None):
    transport = transport or httpx.MockTransport(lambda request: httpx.Response(401))
    providers = IdentityProviderClient(
        providers={
            "acme": DelegatedProviderSettings(user_info_url="https://idp.acme.test/userinfo"),
            "globex": DelegatedProviderSettings(user_info_url="https://idp.globex.test/me"),
        },
        http=httpx.AsyncClient(transport=transport),
    )
    return AuthenticationDispatcher(
        [
            BearerTokenValidator(store=store, jwt_cfg=JWT_CFG, clock=lambda: NOW),
            ApiKeyValidator(store=store),
            DelegatedTokenValidator(store=store, providers=providers, default_rate_limit=30),
        ]
    )


def _source(headers: dict[str, str], query: dict[str, str] | None = None) -> CredentialSource:
    return CredentialSource.of(headers, query)


@pytest.mark.asyncio
async def test_no_recognized_credential(store: FakeCredentialStore) -> None:
    result = await _dispatcher(store).authenticate(_source({"Authorization": "Basic abc"}))
    assert isinstance(result, Err)
    assert result.kind is ErrorKind.authentication_required


@pytest.mark.asyncio
async def test_jwt_bearer_resolves_the_client(store: FakeCredentialStore) -> None:
    store.add_client(make_identity(1, client_type=ClientType.bearer_token))
    token = issue_client_token(cfg=JWT_CFG, client_id=1)

    result = await _dispatcher(store).authenticate(_source({"Authorization": f"Bearer {token}"}))

    assert isinstance(result, Ok)
    assert result.value.id == 1


@pytest.mark.asyncio
async def test_jwt_for_disabled_client_is_rejected(store: FakeCredentialStore) -> None:
    store.add_client(make_identity(1, is_active=False))
    token = issue_client_token(cfg=JWT_CFG, client_id=1)

    result = await _dispatcher(store).authenticate(_source({"Authorization": f"Bearer {token}"}))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.invalid_credentials


@pytest.mark.asyncio
async def test_opaque_token_is_looked_up_and_touched(store: FakeCredentialStore) -> None:
    identity = store.add_client(make_identity(2, client_type=ClientType.bearer_token))
    store.tokens["opaque-live"] = TokenRecord(
        id=7, client=identity, expires_at=NOW + timedelta(days=1)
    )
    store.tokens["opaque-old"] = TokenRecord(
        id=8, client=identity, expires_at=NOW - timedelta(seconds=1)
    )
    dispatcher = _dispatcher(store)

    live = await dispatcher.authenticate(_source({"Authorization": "Bearer opaque-live"}))
    expired = await dispatcher.authenticate(_source({"Authorization": "Bearer opaque-old"}))

    assert isinstance(live, Ok) and live.value.id == 2
    assert isinstance(expired, Err) and expired.kind is ErrorKind.invalid_credentials
    assert store.touched == [7]


@pytest.mark.asyncio
async def test_empty_bearer_value_is_authentication_required(store: FakeCredentialStore) -> None:
    result = await _dispatcher(store).authenticate(_source({"Authorization": "Bearer "}))
    assert isinstance(result, Err)
    assert result.kind is ErrorKind.authentication_required


@pytest.mark.asyncio
async def test_rejected_bearer_does_not_fall_back_to_api_key(store: FakeCredentialStore) -> None:
    store.add_client(make_identity(1), api_key="good-key")

    result = await _dispatcher(store).authenticate(
        _source({"Authorization": "Bearer not-a-token", "X-API-Key": "good-key"})
    )

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.invalid_credentials
    assert "find_client_by_key" not in store.calls


@pytest.mark.asyncio
async def test_api_key_from_header_or_query(store: FakeCredentialStore) -> None:
    store.add_client(make_identity(1), api_key="key-1")
    dispatcher = _dispatcher(store)

    by_header = await dispatcher.authenticate(_source({"x-api-key": "key-1"}))
    by_query = await dispatcher.authenticate(_source({}, {"api_key": "key-1"}))
    unknown = await dispatcher.authenticate(_source({"X-API-Key": "nope"}))

    assert isinstance(by_header, Ok) and by_header.value.id == 1
    assert isinstance(by_query, Ok) and by_query.value.id == 1
    assert isinstance(unknown, Err) and unknown.kind is ErrorKind.invalid_credentials


@pytest.mark.asyncio
async def test_api_secret_is_checked_against_the_bcrypt_hash(store: FakeCredentialStore) -> None:
    store.add_client(make_identity(1), api_key="key-1", secret_hash=hash_secret("s3cret"))
    dispatcher = _dispatcher(store)

    good = await dispatcher.authenticate(_source({"X-API-Key": "key-1", "X-API-Secret": "s3cret"}))
    bad = await dispatcher.authenticate(_source({"X-API-Key": "key-1", "X-API-Secret": "guess"}))

    assert isinstance(good, Ok)
    assert isinstance(bad, Err) and bad.kind is ErrorKind.invalid_credentials


@pytest.mark.asyncio
async def test_delegated_client_key_is_not_an_api_key(store: FakeCredentialStore) -> None:
    store.add_client(make_identity(1, client_type=ClientType.oauth), api_key="oauth_acme_9")

    result = await _dispatcher(store).authenticate(_source({"X-API-Key": "oauth_acme_9"}))

    assert isinstance(result, Err)
    assert result.kind is ErrorKind.invalid_credentials


@pytest.mark.asyncio
async def test_delegated_token_provisions_once_then_reuses(store: FakeCredentialStore) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        assert request.headers["Authorization"] == "Bearer ext-token"
        return httpx.Response(200, json={"id": 42, "email": "dev@acme.test"})

    dispatcher = _dispatcher(store, httpx.MockTransport(handler))
    headers = {"Authorization": "OAuth ext-token", "X-Auth-Provider": "acme"}

    first = await dispatcher.authenticate(_source(headers))
    second = await dispatcher.authenticate(_source(headers))

    assert isinstance(first, Ok) and isinstance(second, Ok)
    assert first.value.id == second.value.id
    assert first.value.name == "dev@acme.test"
    assert first.value.client_type is ClientType.oauth
    assert first.value.rate_limit == 30
    assert store.calls.count("provision_delegated_client") == 1
    assert seen == ["https://idp.acme.test/userinfo"] * 2


@pytest.mark.asyncio
async def test_delegated_without_hint_tries_providers_in_order(store: FakeCredentialStore) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "idp.globex.test":
            return httpx.Response(200, json={"sub": "g-1"})
        return httpx.Response(401)

    result = await _dispatcher(store, httpx.MockTransport(handler)).authenticate(
        _source({"Authorization": "OAuth ext-token"})
    )

    assert isinstance(result, Ok)
    assert result.value.name == "OAuth User g-1"


@pytest.mark.asyncio
async def test_delegated_user_id_zero_is_a_valid_id(store: FakeCredentialStore) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": 0, "sub": "other"})

    result = await _dispatcher(store, httpx.MockTransport(handler)).authenticate(
        _source({"Authorization": "OAuth ext-token", "X-Auth-Provider": "acme"})
    )

    assert isinstance(result, Ok)
    assert store.clients[result.value.id].api_key == "oauth_acme_0"


@pytest.mark.asyncio
async def test_delegated_rejections(store: FakeCredentialStore) -> None:
    dispatcher = _dispatcher(store)

    unknown = await dispatcher.authenticate(
        _source({"Authorization": "OAuth t", "X-Auth-Provider": "initech"})
    )
    refused = await dispatcher.authenticate(
        _source({"Authorization": "OAuth t", "X-Auth-Provider": "acme"})
    )

    assert isinstance(unknown, Err) and unknown.kind is ErrorKind.invalid_credentials
    assert isinstance(refused, Err) and refused.kind is ErrorKind.invalid_credentials
    assert "provision_delegated_client" not in store.calls


def test_credential_material_repr_is_masked() -> None:
    material = CredentialMaterial(scheme=CredentialScheme.api_key, value="super-secret")
    assert "super-secret" not in repr(material)
