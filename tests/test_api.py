"""
tests.test_api

HTTP-level tests: the app boots, the gateway endpoints speak the envelope, and the
operator cache surface is guarded.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy import func, select

from procgate.api.app import create_app
from procgate.auth.models import ClientType
from procgate.db.models import (
    ApiClient,
    ApiFunction,
    ApiRequestLog,
    FunctionParameter,
    Permission,
    Role,
)
from procgate.settings import Settings
from tests.conftest import FakeExecutor


@pytest_asyncio.fixture
async def app(tmp_path: Path) -> AsyncIterator[FastAPI]:
    settings = Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        dev_tokens_enabled=True,
    )
    app = create_app(settings=settings, executor=FakeExecutor(rows=[{"order_id": 99}]))

    # httpx ASGITransport does not drive lifespan; run it explicitly.
    async with app.router.lifespan_context(app):
        async with app.state.sessionmaker() as session:
            grant = Permission(resource_type="function", resource_id=None, action="execute")
            reader = Role(name="reader", permissions=[grant])
            session.add_all(
                [
                    ApiClient(
                        name="alice",
                        client_type=ClientType.api_key,
                        api_key="key-alice",
                        rate_limit="100",
                        roles=[reader],
                    ),
                    ApiFunction(
                        name="Get orders",
                        identifier="get_orders",
                        stored_procedure="sp_get_orders",
                        parameters=[
                            FunctionParameter(
                                name="customer_id",
                                data_type="integer",
                                sp_parameter_name="p_customer_id",
                                is_required=True,
                            )
                        ],
                    ),
                ]
            )
            await session.commit()
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health_endpoints(client: httpx.AsyncClient) -> None:
    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json() == {"status": "ready", "cache": "healthy"}


@pytest.mark.asyncio
async def test_execute_without_credentials(client: httpx.AsyncClient) -> None:
    r = await client.post(
        "/api/v1/execute",
        json={"function": "get_orders", "params": {"customer_id": 1}},
        headers={"x-request-id": "trace-123"},
    )

    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"]["code"] == "AUTHENTICATION_REQUIRED"
    assert body["meta"]["request_id"] == "trace-123"
    assert r.headers["x-request-id"] == "trace-123"


@pytest.mark.asyncio
async def test_execute_by_path_with_api_key(app: FastAPI, client: httpx.AsyncClient) -> None:
    r = await client.post(
        "/api/v1/functions/get_orders",
        json={"customer_id": "3"},
        headers={"X-API-Key": "key-alice"},
    )

    assert r.status_code == 200
    assert r.json()["data"] == [{"order_id": 99}]
    assert r.headers["X-RateLimit-Limit"] == "100"
    assert r.headers["X-RateLimit-Remaining"] == "99"

    async with app.state.sessionmaker() as session:
        logged = (await session.execute(select(func.count(ApiRequestLog.id)))).scalar_one()
    assert logged == 1


@pytest.mark.asyncio
async def test_malformed_body_uses_the_envelope(client: httpx.AsyncClient) -> None:
    r = await client.post("/api/v1/execute", json={"params": {}})

    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_cache_admin_requires_an_operator_role(client: httpx.AsyncClient) -> None:
    r = await client.get("/internal/v1/cache/stats")
    assert r.status_code == 401

    async def token(roles: list[str]) -> str:
        r = await client.post("/v1/dev/token", json={"subject": "ops", "roles": roles})
        assert r.status_code == 200
        return r.json()["access_token"]

    viewer = {"Authorization": f"Bearer {await token(['viewer'])}"}
    admin = {"Authorization": f"Bearer {await token(['cache_admin'])}"}

    r = await client.get("/internal/v1/cache/stats", headers=viewer)
    assert r.status_code == 403

    r = await client.post("/internal/v1/cache/warmup", headers=admin)
    assert r.status_code == 200
    assert r.json() == {"warmed": 1}

    r = await client.get("/internal/v1/cache/stats", headers=admin)
    assert r.status_code == 200
    assert r.json()["configuration"]["total_cached"] == 1

    r = await client.post("/internal/v1/cache/functions/get_orders/invalidate", headers=admin)
    assert r.json() == {"success": True, "message": "Function 'get_orders' invalidation"}

    r = await client.post("/internal/v1/cache/flush", headers=admin)
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_client_token_minted_by_dev_endpoint_is_accepted(client: httpx.AsyncClient) -> None:
    r = await client.post("/v1/dev/token", json={"client_id": 1})
    access_token = r.json()["access_token"]

    r = await client.post(
        "/api/v1/execute",
        json={"function": "get_orders", "params": {"customer_id": 5}},
        headers={"Authorization": f"Bearer {access_token}"},
    )

    assert r.status_code == 200
    assert r.json()["success"] is True


# --- Module Notes -----------------------------------------------------------
# Redis is not configured here, so caches and rate windows are process-local.


@pytest.mark.asyncio
async def test_dev_token_endpoint_is_off_unless_enabled(tmp_path: Path) -> None:
    settings = Settings(env="dev", database_url=f"sqlite+aiosqlite:///{tmp_path / 'off.db'}")
    app = create_app(settings=settings, executor=FakeExecutor())

    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.post("/v1/dev/token", json={"client_id": 1})

    assert r.status_code == 404
