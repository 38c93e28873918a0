from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from procgate.auth.models import ClientType
from procgate.db.models import ApiClient, ApiToken, client_roles


class ClientRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, client_id: int) -> ApiClient | None:
        stmt = (
            select(ApiClient)
            .options(selectinload(ApiClient.roles))
            .where(ApiClient.id == client_id)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_api_key(self, api_key: str) -> ApiClient | None:
        stmt = (
            select(ApiClient)
            .options(selectinload(ApiClient.roles))
            .where(ApiClient.api_key == api_key)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def create(
        self,
        *,
        name: str,
        client_type: ClientType,
        api_key: str | None,
        rate_limit: str,
        secret_hash: str | None = None,
        rate_window: int = 60,
        is_active: bool = True,
    ) -> ApiClient:
        client = ApiClient(
            name=name,
            client_type=client_type,
            api_key=api_key,
            secret_hash=secret_hash,
            rate_limit=rate_limit,
            rate_window=rate_window,
            is_active=is_active,
            roles=[],
        )
        self._session.add(client)
        await self._session.flush()
        return client

    async def role_ids(self, client_id: int) -> frozenset[int]:
        stmt = select(client_roles.c.role_id).where(client_roles.c.client_id == client_id)
        return frozenset((await self._session.execute(stmt)).scalars().all())

    async def ids_for_role(self, role_id: int) -> list[int]:
        stmt = select(client_roles.c.client_id).where(client_roles.c.role_id == role_id)
        return list((await self._session.execute(stmt)).scalars().all())


class TokenRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_token(self, token: str) -> ApiToken | None:
        stmt = (
            select(ApiToken)
            .options(selectinload(ApiToken.client).selectinload(ApiClient.roles))
            .where(ApiToken.token == token)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def touch(self, token_id: int) -> None:
        # Single UPDATE; concurrent requests on the same token simply race to the latest time.
        stmt = (
            update(ApiToken)
            .where(ApiToken.id == token_id)
            .values(last_used_at=datetime.utcnow())
        )
        await self._session.execute(stmt)
