"""
tests.test_pipeline

End-to-end admission scenarios through `GatewayPipeline.handle`.

Responsibilities:
- Cover each terminal failure kind and the success path.
- Assert the audit trail (one request outcome per request, security events on denial).
"""

from __future__ import annotations

import pytest

from procgate.authz.models import PermissionGrant
from procgate.execution import DownstreamError
from procgate.functions.definitions import ErrorMapping, ParameterSpec
from procgate.gateway.states import HAPPY_PATH, PipelineState

from tests.conftest import Gateway, make_definition, make_identity

EXECUTE_ALL = PermissionGrant(resource_type="function", resource_id=None, action="execute")
KEY = {"X-API-Key": "key-1"}


def _setup(gateway: Gateway, **identity_kwargs) -> None:
    gateway.store.add_client(make_identity(1, **identity_kwargs), api_key="key-1", roles={5})
    gateway.store.grant(5, EXECUTE_ALL)
    gateway.store.add_function(make_definition())


@pytest.mark.asyncio
async def test_success_runs_every_stage_in_order(gateway: Gateway) -> None:
    _setup(gateway)

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 200
    assert r.trail == HAPPY_PATH
    assert r.body["success"] is True
    assert r.body["data"] == [{"order_id": 1}]
    assert r.body["meta"]["request_id"] == "req-1"
    assert r.headers["X-RateLimit-Limit"] == "60"
    assert r.headers["X-RateLimit-Remaining"] == "59"
    assert "Retry-After" not in r.headers
    # Defaults are filled and values coerced before the executor sees them.
    assert gateway.executor.calls == [("get_orders", {"customer_id": 7, "status": "open"})]

    [outcome] = gateway.audit.outcomes
    assert outcome.http_status == 200
    assert outcome.client_id == 1
    assert outcome.function_id == 10
    assert outcome.error_code is None


@pytest.mark.asyncio
async def test_missing_credentials_is_authentication_required(gateway: Gateway) -> None:
    _setup(gateway)

    r = await gateway.pipeline.handle(gateway.request(headers={}))

    assert r.status == 401
    assert r.body["success"] is False
    assert r.body["error"]["code"] == "AUTHENTICATION_REQUIRED"
    assert r.trail == (PipelineState.received, PipelineState.failed)
    assert gateway.store.calls == []
    assert gateway.executor.calls == []
    [outcome] = gateway.audit.outcomes
    assert outcome.http_status == 401
    assert outcome.client_id is None
    [event] = gateway.audit.security
    assert event.event_type == "AUTHENTICATION_FAILED"
    assert event.details["error_code"] == "AUTHENTICATION_REQUIRED"


@pytest.mark.asyncio
async def test_inactive_api_key_is_invalid_credentials(gateway: Gateway) -> None:
    _setup(gateway, is_active=False)

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 401
    assert r.body["error"]["code"] == "INVALID_CREDENTIALS"
    assert gateway.executor.calls == []
    [event] = gateway.audit.security
    assert event.event_type == "AUTHENTICATION_FAILED"
    assert event.client_id is None
    assert event.details["error_code"] == "INVALID_CREDENTIALS"
    [outcome] = gateway.audit.outcomes
    assert outcome.http_status == 401


@pytest.mark.asyncio
async def test_unknown_function_is_not_found(gateway: Gateway) -> None:
    _setup(gateway)

    r = await gateway.pipeline.handle(gateway.request("no_such_function", headers=KEY))

    assert r.status == 404
    assert r.body["error"]["code"] == "FUNCTION_NOT_FOUND"
    assert r.trail == (PipelineState.received, PipelineState.authenticated, PipelineState.failed)
    [outcome] = gateway.audit.outcomes
    assert outcome.function_identifier == "no_such_function"
    assert outcome.function_id is None


@pytest.mark.asyncio
async def test_denied_caller_gets_403_and_a_security_event(gateway: Gateway) -> None:
    gateway.store.add_client(make_identity(1), api_key="key-1", roles=set())
    gateway.store.add_function(make_definition())

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 403
    assert r.body["error"]["code"] == "PERMISSION_DENIED"
    assert gateway.executor.calls == []
    [event] = gateway.audit.security
    assert event.event_type == "PERMISSION_DENIED"
    assert event.client_id == 1
    assert event.details["function_id"] == 10
    assert event.ip_address == "10.0.0.1"
    # Denied requests never touch the rate window.
    assert await gateway.limiter.attempts("client:1", 60) == 0


@pytest.mark.asyncio
async def test_budget_exhaustion_is_429_until_the_window_slides(gateway: Gateway) -> None:
    _setup(gateway, rate_limit="2/minute")

    first = await gateway.pipeline.handle(gateway.request(headers=KEY))
    second = await gateway.pipeline.handle(gateway.request(headers=KEY))
    third = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert first.status == second.status == 200
    assert second.headers["X-RateLimit-Remaining"] == "0"
    assert third.status == 429
    assert third.body["error"]["code"] == "RATE_LIMIT_EXCEEDED"
    assert third.body["error"]["details"]["max_attempts"] == 2
    retry_after = third.body["error"]["details"]["retry_after"]
    assert 0 < retry_after <= 60
    assert third.headers["Retry-After"] == str(retry_after)
    assert third.headers["X-RateLimit-Remaining"] == "0"
    assert len(gateway.executor.calls) == 2
    assert gateway.audit.security == []

    gateway.clock.advance(61)
    fourth = await gateway.pipeline.handle(gateway.request(headers=KEY))
    assert fourth.status == 200


@pytest.mark.asyncio
async def test_disabled_function_is_rejected_with_a_security_event(gateway: Gateway) -> None:
    _setup(gateway)
    gateway.store.add_function(make_definition(is_active=False))

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 403
    assert r.body["error"]["code"] == "FUNCTION_DISABLED"
    assert gateway.executor.calls == []
    [event] = gateway.audit.security
    assert event.event_type == "FUNCTION_DISABLED"
    assert event.client_id == 1
    assert event.details["function_id"] == 10
    [outcome] = gateway.audit.outcomes
    assert outcome.http_status == 403


@pytest.mark.asyncio
async def test_bad_params_are_a_validation_error(gateway: Gateway) -> None:
    _setup(gateway)

    r = await gateway.pipeline.handle(
        gateway.request(params={"customer_id": "abc", "status": "pending"}, headers=KEY)
    )

    assert r.status == 400
    assert r.body["error"]["code"] == "VALIDATION_ERROR"
    fields = r.body["error"]["details"]["fields"]
    assert set(fields) == {"customer_id", "status"}
    assert gateway.executor.calls == []
    # Admission happened first, so rate headers are present on the failure.
    assert r.headers["X-RateLimit-Remaining"] == "59"


@pytest.mark.asyncio
async def test_mapped_downstream_error_uses_the_function_mapping(gateway: Gateway) -> None:
    _setup(gateway)
    gateway.store.add_function(
        make_definition(error_mappings=(ErrorMapping("45000", 409, "Order is locked"),))
    )
    gateway.executor.error = DownstreamError("45000", "row locked by another session")

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 409
    assert r.body["error"] == {"code": "45000", "message": "Order is locked"}
    assert gateway.audit.outcomes[0].error_code == "45000"


@pytest.mark.asyncio
async def test_unmapped_downstream_error_is_opaque(gateway: Gateway) -> None:
    _setup(gateway)
    gateway.executor.error = DownstreamError("1213", "deadlock detected on orders")

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 500
    assert r.body["error"]["code"] == "INTERNAL_ERROR"
    assert "deadlock" not in r.body["error"]["message"]
    assert "details" not in r.body["error"]


@pytest.mark.asyncio
async def test_malformed_definition_is_internal_error(gateway: Gateway) -> None:
    _setup(gateway)
    broken = (
        ParameterSpec(name="a", data_type="integer", sp_parameter_name="p_a", position=0),
        ParameterSpec(name="a", data_type="integer", sp_parameter_name="p_b", position=1),
    )
    gateway.store.add_function(make_definition(parameters=broken))

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 500
    assert r.body["error"]["code"] == "INTERNAL_ERROR"
    assert gateway.executor.calls == []


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_internal_error(gateway: Gateway) -> None:
    _setup(gateway)

    async def boom(definition, params):
        raise RuntimeError("executor crashed")

    gateway.executor.execute = boom  # type: ignore[method-assign]

    r = await gateway.pipeline.handle(gateway.request(headers=KEY))

    assert r.status == 500
    assert r.state is PipelineState.failed
    assert r.body["error"]["message"] == "An internal error occurred"
    assert len(gateway.audit.outcomes) == 1


# --- Module Notes -----------------------------------------------------------
# Each test builds its own store contents; the fixture wires fresh caches per test.
