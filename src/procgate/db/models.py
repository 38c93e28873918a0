"""
procgate.db.models

Persistence schema for the gateway's durable truth.

Responsibilities:
- Define ORM models for the records the admission pipeline reads:
  - ApiClient / ApiToken: caller identities and opaque tokens
  - Role / Permission: RBAC grants (many-to-many with clients)
  - ApiFunction (+ parameters, responses, error mappings): callable definitions
- Define append-only logging tables:
  - ApiRequestLog: one row per terminal gateway outcome
  - SecurityEvent: authorization denials and other security-relevant events
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procgate.auth.models import ClientType
from procgate.db.base import Base


def _utcnow() -> datetime:
    # Persist naive UTC timestamps for simplicity; production systems may use tz-aware types.
    return datetime.utcnow()


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

client_roles = Table(
    "client_roles",
    Base.metadata,
    Column("client_id", ForeignKey("api_clients.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class ApiClient(Base):
    __tablename__ = "api_clients"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    # The API-key strategy refuses keys of any other kind.
    client_type: Mapped[ClientType] = mapped_column(Enum(ClientType), nullable=False)

    api_key: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    # bcrypt hash; only checked when the caller presents a secret alongside the key.
    secret_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)
    # Absolute count ("60") or shorthand ("60/minute").
    rate_limit: Mapped[str] = mapped_column(String(32), nullable=False, default="60")
    rate_window: Mapped[int] = mapped_column(Integer, nullable=False, default=60)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    tokens: Mapped[list[ApiToken]] = relationship(
        back_populates="client", cascade="all, delete-orphan"
    )
    roles: Mapped[list[Role]] = relationship(secondary=client_roles, back_populates="clients")


class ApiToken(Base):
    __tablename__ = "api_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("api_clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="access")

    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)

    client: Mapped[ApiClient] = relationship(back_populates="tokens")


class Role(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    permissions: Mapped[list[Permission]] = relationship(
        secondary=role_permissions, back_populates="roles"
    )
    clients: Mapped[list[ApiClient]] = relationship(
        secondary=client_roles, back_populates="roles"
    )


class Permission(Base):
    __tablename__ = "permissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    resource_type: Mapped[str] = mapped_column(String(32), nullable=False)
    # NULL resource_id grants every instance of the resource type.
    resource_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    action: Mapped[str] = mapped_column(String(16), nullable=False)

    roles: Mapped[list[Role]] = relationship(
        secondary=role_permissions, back_populates="permissions"
    )

    __table_args__ = (
        UniqueConstraint("resource_type", "resource_id", "action", name="uq_permission_tuple"),
    )


class ApiFunction(Base):
    __tablename__ = "api_functions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    identifier: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    stored_procedure: Mapped[str] = mapped_column(String(256), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    parameters: Mapped[list[FunctionParameter]] = relationship(
        cascade="all, delete-orphan", order_by="FunctionParameter.position"
    )
    responses: Mapped[list[FunctionResponse]] = relationship(
        cascade="all, delete-orphan", order_by="FunctionResponse.id"
    )
    error_mappings: Mapped[list[FunctionErrorMapping]] = relationship(
        cascade="all, delete-orphan", order_by="FunctionErrorMapping.id"
    )


class FunctionParameter(Base):
    __tablename__ = "function_parameters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    function_id: Mapped[int] = mapped_column(
        ForeignKey("api_functions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    data_type: Mapped[str] = mapped_column(String(16), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    validation_rules: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    sp_parameter_name: Mapped[str] = mapped_column(String(128), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class FunctionResponse(Base):
    __tablename__ = "function_responses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    function_id: Mapped[int] = mapped_column(
        ForeignKey("api_functions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_name: Mapped[str] = mapped_column(String(128), nullable=False)
    sp_column_name: Mapped[str] = mapped_column(String(128), nullable=False)
    data_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    transform_rule: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)


class FunctionErrorMapping(Base):
    __tablename__ = "function_error_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    function_id: Mapped[int] = mapped_column(
        ForeignKey("api_functions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    error_code: Mapped[str] = mapped_column(String(64), nullable=False)
    http_status: Mapped[int] = mapped_column(Integer, nullable=False)
    error_message: Mapped[str] = mapped_column(Text, nullable=False)


class ApiRequestLog(Base):
    __tablename__ = "api_request_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    client_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    function_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    function_identifier: Mapped[str | None] = mapped_column(String(128), nullable=True)

    http_status: Mapped[int] = mapped_column(Integer, nullable=False)
    error_code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    execution_time: Mapped[float] = mapped_column(Float, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)

    __table_args__ = (Index("ix_request_logs_client_created", "client_id", "created_at"),)


class SecurityEvent(Base):
    __tablename__ = "security_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    client_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, index=True)


# --- Module Notes -----------------------------------------------------------
# The admin backend owns writes to every table except the two log tables and the
# delegated-client auto-provisioning path; the gateway reads and never edits definitions.
