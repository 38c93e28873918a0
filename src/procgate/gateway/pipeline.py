"""
procgate.gateway.pipeline

Gateway Pipeline: the per-request admission state machine.

Responsibilities:
- Run authenticate -> target lookup -> authorize -> rate admission -> parameter
  resolution -> execute -> respond, strictly in order, stopping at the first failure.
- Map every failure kind onto its HTTP outcome and envelope.
- Attach rate-limit headers to every response produced after admission.
- Record each terminal outcome exactly once; sink failures never alter the response.
- Emit security events for failed authentication, disabled targets and denials.

The pipeline is built once by the composition root with explicit references to every
collaborator; it holds no per-request state between calls.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from procgate.audit import (
    AUTHENTICATION_FAILED_EVENT,
    FUNCTION_DISABLED_EVENT,
    PERMISSION_DENIED_EVENT,
    AuditSink,
    RequestOutcome,
    SecurityRecord,
    safe_record,
)
from procgate.auth.dispatcher import AuthenticationDispatcher
from procgate.auth.models import CallerIdentity
from procgate.auth.strategies import CredentialSource
from procgate.authz.engine import AuthorizationEngine
from procgate.errors import ErrorKind, Failure
from procgate.execution import DownstreamError, ProcedureExecutor
from procgate.functions.definitions import FunctionDefinition
from procgate.functions.params import validate_params
from procgate.functions.resolver import ConfigurationResolver
from procgate.gateway.responses import error_envelope, success_envelope
from procgate.gateway.states import PipelineState
from procgate.observability.logging import get_logger
from procgate.ratelimit.limiter import RateLimiter, RateStatus, parse_budget
from procgate.results import Err

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class GatewayRequest:
    request_id: str
    function: str
    params: dict[str, Any]
    credentials: CredentialSource
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class GatewayResponse:
    status: int
    body: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)
    trail: tuple[PipelineState, ...] = ()
    failure: Failure | None = None

    @property
    def state(self) -> PipelineState:
        return self.trail[-1] if self.trail else PipelineState.received


@dataclass(slots=True)
class _Run:
    """Mutable per-request bookkeeping; never shared between requests."""

    request: GatewayRequest
    started: float
    trail: list[PipelineState] = field(default_factory=lambda: [PipelineState.received])
    identity: CallerIdentity | None = None
    definition: FunctionDefinition | None = None
    rate: RateStatus | None = None

    def advance(self, state: PipelineState) -> None:
        self.trail.append(state)


class _Halt(Exception):
    def __init__(self, failure: Failure) -> None:
        super().__init__(failure.message)
        self.failure = failure


@dataclass(frozen=True, slots=True)
class RateDefaults:
    budget: int = 60
    window: int = 60


class GatewayPipeline:
    def __init__(
        self,
        *,
        dispatcher: AuthenticationDispatcher,
        resolver: ConfigurationResolver,
        authorizer: AuthorizationEngine,
        limiter: RateLimiter,
        executor: ProcedureExecutor,
        audit: AuditSink,
        rate_defaults: RateDefaults = RateDefaults(),
        debug: bool = False,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._authorizer = authorizer
        self._limiter = limiter
        self._executor = executor
        self._audit = audit
        self._rate_defaults = rate_defaults
        self._debug = debug
        self._clock = clock

    async def handle(self, request: GatewayRequest) -> GatewayResponse:
        run = _Run(request=request, started=self._clock())
        try:
            data = await self._run(run)
        except _Halt as halt:
            response = self._fail(run, halt.failure)
        except Exception as e:
            log.exception(
                "gateway_unhandled_error", request_id=request.request_id, function=request.function
            )
            failure = Failure(
                kind=ErrorKind.internal_error,
                message="Unhandled gateway error",
                details={"exception": type(e).__name__, "error": str(e)},
            )
            response = self._fail(run, failure)
        else:
            run.advance(PipelineState.responded)
            response = GatewayResponse(
                status=200,
                body=success_envelope(
                    data, request_id=request.request_id, execution_time=self._elapsed(run)
                ),
                headers=run.rate.headers() if run.rate else {},
                trail=tuple(run.trail),
            )

        await self._record(run, response)
        return response

    async def _run(self, run: _Run) -> Any:
        request = run.request

        authn = await self._dispatcher.authenticate(request.credentials)
        if isinstance(authn, Err):
            await self._security(
                AUTHENTICATION_FAILED_EVENT,
                None,
                {"error_code": authn.failure.error_code, "user_agent": request.user_agent},
                request,
            )
            raise _Halt(authn.failure)
        identity = run.identity = authn.value
        run.advance(PipelineState.authenticated)

        # Target lookup precedes authorization: the decision needs its id and active flag.
        lookup = await self._resolver.load(request.function, active_only=False)
        if isinstance(lookup, Err):
            raise _Halt(lookup.failure)
        definition = run.definition = lookup.value
        if not definition.is_active:
            await self._security(
                FUNCTION_DISABLED_EVENT,
                identity.id,
                {"function_id": definition.id, "function": definition.identifier},
                request,
            )
            raise _Halt(
                Failure(
                    kind=ErrorKind.function_disabled,
                    message=f"Function '{definition.identifier}' is disabled",
                )
            )

        if not await self._authorizer.authorize(identity, definition):
            await self._security(
                PERMISSION_DENIED_EVENT,
                identity.id,
                {"function_id": definition.id, "function": definition.identifier},
                request,
            )
            raise _Halt(
                Failure(
                    kind=ErrorKind.permission_denied,
                    message=f"Client is not permitted to execute '{definition.identifier}'",
                )
            )
        run.advance(PipelineState.authorized)

        budget = parse_budget(identity.rate_limit, self._rate_defaults.budget)
        window = identity.rate_window or self._rate_defaults.window
        if not await self._limiter.admit(identity.rate_key, budget, window):
            status = await self._limiter.status(identity.rate_key, budget, window)
            run.rate = status
            raise _Halt(
                Failure(
                    kind=ErrorKind.rate_limit_exceeded,
                    message="Rate limit exceeded",
                    details={"max_attempts": budget, "retry_after": status.retry_after},
                )
            )
        await self._limiter.hit(identity.rate_key, window)
        run.rate = await self._limiter.status(identity.rate_key, budget, window)
        run.advance(PipelineState.admitted)

        validated = validate_params(definition, request.params)
        if isinstance(validated, Err):
            raise _Halt(validated.failure)
        run.advance(PipelineState.configuration_resolved)

        try:
            result = await self._executor.execute(definition, validated.value)
        except DownstreamError as e:
            raise _Halt(self._map_downstream(definition, e)) from e
        run.advance(PipelineState.executed)
        return result.get("data")

    @staticmethod
    def _map_downstream(definition: FunctionDefinition, e: DownstreamError) -> Failure:
        mapping = definition.error_mapping_for(e.code)
        if mapping is None:
            log.error(
                "downstream_unmapped_error",
                function=definition.identifier,
                code=e.code,
                error=e.message,
            )
            return Failure(
                kind=ErrorKind.internal_error,
                message="Downstream execution failed",
                details={"downstream_code": e.code, "error": e.message},
            )
        return Failure(
            kind=ErrorKind.internal_error,
            message=mapping.error_message,
            status=mapping.http_status,
            code=mapping.error_code,
        )

    def _fail(self, run: _Run, failure: Failure) -> GatewayResponse:
        run.advance(PipelineState.failed)
        headers = dict(run.rate.headers()) if run.rate else {}
        headers.update(failure.headers)
        return GatewayResponse(
            status=failure.http_status,
            body=error_envelope(
                failure,
                request_id=run.request.request_id,
                execution_time=self._elapsed(run),
                debug=self._debug,
            ),
            headers=headers,
            trail=tuple(run.trail),
            failure=failure,
        )

    def _elapsed(self, run: _Run) -> float:
        return max(0.0, self._clock() - run.started)

    async def _security(
        self,
        event_type: str,
        client_id: int | None,
        details: dict[str, Any],
        request: GatewayRequest,
    ) -> None:
        await safe_record(
            self._audit,
            SecurityRecord(
                event_type=event_type,
                client_id=client_id,
                details=details,
                ip_address=request.ip_address,
            ),
        )

    async def _record(self, run: _Run, response: GatewayResponse) -> None:
        failure = response.failure
        await safe_record(
            self._audit,
            RequestOutcome(
                request_id=run.request.request_id,
                http_status=response.status,
                execution_time=self._elapsed(run),
                client_id=run.identity.id if run.identity else None,
                function_identifier=run.request.function or None,
                function_id=run.definition.id if run.definition else None,
                error_code=failure.error_code if failure else None,
                ip_address=run.request.ip_address,
                user_agent=run.request.user_agent,
            ),
        )


# --- Module Notes -----------------------------------------------------------
# No stage is retried. The rate-window hit happens before execution and is never
# undone, so a request abandoned mid-flight still consumes budget.
