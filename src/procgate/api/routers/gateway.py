"""
procgate.api.routers.gateway

Public gateway endpoints.

Responsibilities:
- `POST /api/v1/execute` with `{"function", "params"}`.
- `POST /api/v1/functions/{identifier}` with the params bag as the body.
- Translate the HTTP request into a `GatewayRequest` and the pipeline result into a response.
- Render body validation failures in the gateway envelope.
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from procgate.api.deps import pipeline_dep
from procgate.auth.strategies import CredentialSource
from procgate.errors import ErrorKind, Failure
from procgate.gateway.pipeline import GatewayPipeline, GatewayRequest
from procgate.gateway.responses import error_envelope

router = APIRouter(prefix="/api/v1", tags=["gateway"])


class ExecuteRequest(BaseModel):
    function: str = Field(min_length=1, max_length=255)
    params: dict[str, Any] = Field(default_factory=dict)


def _request_id(request: Request) -> str:
    # Set by RequestContextMiddleware; the fallback only matters when it is not installed.
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _gateway_request(request: Request, function: str, params: dict[str, Any]) -> GatewayRequest:
    return GatewayRequest(
        request_id=_request_id(request),
        function=function,
        params=params,
        credentials=CredentialSource.of(request.headers, request.query_params),
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


async def _dispatch(pipeline: GatewayPipeline, gateway_request: GatewayRequest) -> JSONResponse:
    result = await pipeline.handle(gateway_request)
    return JSONResponse(status_code=result.status, content=result.body, headers=result.headers)


@router.post("/execute")
async def execute(
    request: Request,
    body: ExecuteRequest,
    pipeline: GatewayPipeline = Depends(pipeline_dep),
) -> JSONResponse:
    return await _dispatch(pipeline, _gateway_request(request, body.function, body.params))


@router.post("/functions/{identifier}")
async def execute_function(
    identifier: str,
    request: Request,
    params: dict[str, Any] | None = Body(default=None),
    pipeline: GatewayPipeline = Depends(pipeline_dep),
) -> JSONResponse:
    return await _dispatch(pipeline, _gateway_request(request, identifier, params or {}))


async def gateway_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    if not request.url.path.startswith(router.prefix):
        return await request_validation_exception_handler(request, exc)
    failure = Failure(
        kind=ErrorKind.validation_error,
        message="Malformed request body",
        details={"errors": [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()
        ]},
    )
    return JSONResponse(
        status_code=failure.http_status,
        content=error_envelope(failure, request_id=_request_id(request), execution_time=None),
    )


# --- Module Notes -----------------------------------------------------------
# A malformed body is rejected before the pipeline runs, so it is neither
# authenticated nor counted against any rate budget.
