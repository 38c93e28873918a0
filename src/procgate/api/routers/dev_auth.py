from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_404_NOT_FOUND

from procgate.auth.jwt import (
    client_jwt_config,
    issue_client_token,
    issue_operator_token,
    operator_jwt_config,
)
from procgate.settings import Settings, get_settings

router = APIRouter(prefix="/v1/dev", tags=["dev"])


class DevTokenRequest(BaseModel):
    # Operator token when `subject` is set, client bearer token when `client_id` is set.
    subject: str | None = Field(default=None, min_length=1, max_length=256)
    roles: list[str] = Field(default_factory=list)
    client_id: int | None = Field(default=None, ge=1)
    # Defaults: `jwt_ttl_hours` for client tokens, one hour for operator tokens.
    ttl_minutes: int | None = Field(default=None, ge=1, le=7 * 24 * 60)


class DevTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/token", response_model=DevTokenResponse)
async def mint_dev_token(
    body: DevTokenRequest,
    settings: Settings = Depends(get_settings),
) -> DevTokenResponse:
    if settings.env == "prod" or not settings.dev_tokens_enabled:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Not found")
    if (body.subject is None) == (body.client_id is None):
        raise HTTPException(status_code=422, detail="Provide exactly one of subject or client_id")

    if body.client_id is not None:
        ttl = (
            timedelta(minutes=body.ttl_minutes)
            if body.ttl_minutes
            else timedelta(hours=settings.jwt_ttl_hours)
        )
        token = issue_client_token(
            cfg=client_jwt_config(settings), client_id=body.client_id, ttl=ttl
        )
    else:
        token = issue_operator_token(
            cfg=operator_jwt_config(settings),
            subject=body.subject or "",
            roles=body.roles,
            ttl=timedelta(minutes=body.ttl_minutes or 60),
        )
    return DevTokenResponse(access_token=token)
