from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from procgate.db.models import Permission, role_permissions


class PermissionRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def for_role(self, role_id: int) -> list[Permission]:
        stmt = (
            select(Permission)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id == role_id)
            .order_by(Permission.id)
        )
        return list((await self._session.execute(stmt)).scalars().all())
