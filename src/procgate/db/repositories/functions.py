"""
procgate.db.repositories.functions

Repository for `ApiFunction` definitions and their child specs.

Responsibilities:
- Load a function with parameters, responses, and error mappings in one round trip.
- List active function identifiers for cache warmup.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from procgate.db.models import ApiFunction


class FunctionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_identifier(
        self, identifier: str, *, active_only: bool = False
    ) -> ApiFunction | None:
        stmt = (
            select(ApiFunction)
            .options(
                selectinload(ApiFunction.parameters),
                selectinload(ApiFunction.responses),
                selectinload(ApiFunction.error_mappings),
            )
            .where(ApiFunction.identifier == identifier)
        )
        if active_only:
            stmt = stmt.where(ApiFunction.is_active.is_(True))
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_active_identifiers(self) -> list[str]:
        stmt = (
            select(ApiFunction.identifier)
            .where(ApiFunction.is_active.is_(True))
            .order_by(ApiFunction.identifier)
        )
        return list((await self._session.execute(stmt)).scalars().all())


# --- Module Notes -----------------------------------------------------------
# Child collections are ordered by the relationship definitions (parameters by position).
