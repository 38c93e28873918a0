"""
procgate.audit

Audit/log sinks for terminal request outcomes and security events.

Responsibilities:
- Define the event records and the fire-and-forget `AuditSink.record(event)` boundary.
- Provide a structlog sink, a database sink, and a fan-out composite.
- `safe_record()`: the only way the pipeline writes, so sink failures never alter a response.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from procgate.db.repositories.audit import AuditRepo
from procgate.observability.logging import get_logger

log = get_logger(__name__)

AUTHENTICATION_FAILED_EVENT = "AUTHENTICATION_FAILED"
PERMISSION_DENIED_EVENT = "PERMISSION_DENIED"
FUNCTION_DISABLED_EVENT = "FUNCTION_DISABLED"


@dataclass(frozen=True, slots=True)
class RequestOutcome:
    request_id: str
    http_status: int
    execution_time: float
    client_id: int | None = None
    function_identifier: str | None = None
    function_id: int | None = None
    error_code: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class SecurityRecord:
    event_type: str
    client_id: int | None
    details: dict[str, Any] = field(default_factory=dict)
    ip_address: str | None = None


AuditEvent = RequestOutcome | SecurityRecord


class AuditSink(Protocol):
    async def record(self, event: AuditEvent) -> None: ...


class StructlogAuditSink:
    async def record(self, event: AuditEvent) -> None:
        if isinstance(event, RequestOutcome):
            log.info(
                "gateway_request",
                request_id=event.request_id,
                client_id=event.client_id,
                function=event.function_identifier,
                function_id=event.function_id,
                status=event.http_status,
                error_code=event.error_code,
                execution_time=round(event.execution_time, 6),
            )
        else:
            log.warning(
                "security_event",
                event_type=event.event_type,
                client_id=event.client_id,
                ip_address=event.ip_address,
                **event.details,
            )


class DatabaseAuditSink:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record(self, event: AuditEvent) -> None:
        async with self._session_factory() as session:
            repo = AuditRepo(session)
            if isinstance(event, RequestOutcome):
                await repo.add_request_log(
                    request_id=event.request_id,
                    client_id=event.client_id,
                    function_id=event.function_id,
                    function_identifier=event.function_identifier,
                    http_status=event.http_status,
                    error_code=event.error_code,
                    execution_time=event.execution_time,
                    ip_address=event.ip_address,
                    user_agent=event.user_agent,
                )
            else:
                await repo.add_security_event(
                    event_type=event.event_type,
                    client_id=event.client_id,
                    details=event.details,
                    ip_address=event.ip_address,
                )
            await session.commit()


class CompositeAuditSink:
    def __init__(self, sinks: Sequence[AuditSink]) -> None:
        self._sinks = tuple(sinks)

    async def record(self, event: AuditEvent) -> None:
        # Each sink is isolated; one failing backend does not starve the others.
        for sink in self._sinks:
            await safe_record(sink, event)


async def safe_record(sink: AuditSink, event: AuditEvent) -> None:
    try:
        await sink.record(event)
    except Exception as e:
        log.error(
            "audit_record_failed",
            sink=type(sink).__name__,
            event=type(event).__name__,
            error=str(e),
        )


# --- Module Notes -----------------------------------------------------------
# Rate-limit rejections are request outcomes only, never security events. Failed
# authentications, disabled targets and permission denials are security events.
