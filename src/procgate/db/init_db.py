"""
procgate.db.init_db

DB initialization helpers (dev/test convenience).

Responsibilities:
- Create the credential, definition, and log tables for local development and tests.
- Keep production migration workflow separate (Alembic).
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from procgate.db import models  # noqa: F401  # registers tables on Base.metadata
from procgate.db.base import Base


async def init_db(engine: AsyncEngine) -> None:
    """
    Dev/test bootstrap: create tables if they don't exist.
    """

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# --- Module Notes -----------------------------------------------------------
# Production should run `alembic upgrade head` as part of deployment instead.
