"""
procgate.db.repositories.audit

Repository for the append-only request log and security event tables.

Responsibilities:
- Append one `ApiRequestLog` row per terminal gateway outcome.
- Append `SecurityEvent` rows (permission denials, failed authentications).
- Query security events by client for investigations.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from procgate.db.models import ApiRequestLog, SecurityEvent


class AuditRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_request_log(
        self,
        *,
        request_id: str,
        client_id: int | None,
        function_id: int | None,
        function_identifier: str | None,
        http_status: int,
        error_code: str | None,
        execution_time: float,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> ApiRequestLog:
        # Log rows are append-only (no update/delete) in normal operation.
        row = ApiRequestLog(
            request_id=request_id,
            client_id=client_id,
            function_id=function_id,
            function_identifier=function_identifier,
            http_status=http_status,
            error_code=error_code,
            execution_time=execution_time,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def add_security_event(
        self,
        *,
        event_type: str,
        client_id: int | None,
        details: dict[str, Any],
        ip_address: str | None = None,
    ) -> SecurityEvent:
        ev = SecurityEvent(
            event_type=event_type,
            client_id=client_id,
            ip_address=ip_address,
            details=details,
        )
        self._session.add(ev)
        await self._session.flush()
        return ev

    async def list_security_events(
        self, client_id: int, *, limit: int = 200
    ) -> list[SecurityEvent]:
        # Newest-first; probing shows up as bursts of PERMISSION_DENIED for one client.
        stmt = (
            select(SecurityEvent)
            .where(SecurityEvent.client_id == client_id)
            .order_by(desc(SecurityEvent.created_at), desc(SecurityEvent.id))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())


# --- Module Notes -----------------------------------------------------------
# Writes here happen after the HTTP outcome is decided; callers must swallow failures.
