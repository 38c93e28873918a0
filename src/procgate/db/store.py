"""
procgate.db.store

SQLAlchemy implementation of the `CredentialStore` boundary.

Responsibilities:
- Open one short-lived session per lookup and map ORM rows onto domain types.
- Auto-provision delegated clients (the only write path besides token touches).
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from procgate.auth.models import CallerIdentity, ClientType
from procgate.authz.models import PermissionGrant
from procgate.db.models import ApiClient, ApiFunction
from procgate.db.repositories.clients import ClientRepo, TokenRepo
from procgate.db.repositories.functions import FunctionRepo
from procgate.db.repositories.permissions import PermissionRepo
from procgate.functions.definitions import (
    ErrorMapping,
    FunctionDefinition,
    ParameterSpec,
    ResponseMapping,
)
from procgate.store import ClientRecord, TokenRecord


def identity_from_row(row: ApiClient) -> CallerIdentity:
    return CallerIdentity(
        id=row.id,
        name=row.name,
        is_active=bool(row.is_active),
        client_type=ClientType(row.client_type),
        rate_limit=row.rate_limit,
        rate_window=row.rate_window,
        role_ids=frozenset(r.id for r in row.roles),
    )


def definition_from_row(row: ApiFunction) -> FunctionDefinition:
    return FunctionDefinition(
        id=row.id,
        name=row.name,
        identifier=row.identifier,
        description=row.description,
        stored_procedure=row.stored_procedure,
        is_active=bool(row.is_active),
        parameters=tuple(
            ParameterSpec(
                name=p.name,
                data_type=p.data_type,
                sp_parameter_name=p.sp_parameter_name,
                is_required=bool(p.is_required),
                default_value=p.default_value,
                validation_rules=tuple(p.validation_rules or ()),
                position=p.position,
            )
            for p in row.parameters
        ),
        responses=tuple(
            ResponseMapping(
                field_name=r.field_name,
                sp_column_name=r.sp_column_name,
                data_type=r.data_type,
                transform_rule=r.transform_rule,
            )
            for r in row.responses
        ),
        error_mappings=tuple(
            ErrorMapping(
                error_code=m.error_code,
                http_status=m.http_status,
                error_message=m.error_message,
            )
            for m in row.error_mappings
        ),
    )


class SqlCredentialStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def find_client_by_key(self, api_key: str) -> ClientRecord | None:
        async with self._session_factory() as session:
            row = await ClientRepo(session).get_by_api_key(api_key)
            if row is None:
                return None
            return ClientRecord(
                identity=identity_from_row(row),
                api_key=row.api_key,
                secret_hash=row.secret_hash,
            )

    async def find_client_by_id(self, client_id: int) -> CallerIdentity | None:
        async with self._session_factory() as session:
            row = await ClientRepo(session).get(client_id)
            return identity_from_row(row) if row is not None else None

    async def find_token(self, token: str) -> TokenRecord | None:
        async with self._session_factory() as session:
            row = await TokenRepo(session).get_by_token(token)
            if row is None:
                return None
            client = identity_from_row(row.client) if row.client is not None else None
            return TokenRecord(id=row.id, client=client, expires_at=row.expires_at)

    async def touch_token(self, token_id: int) -> None:
        async with self._session_factory() as session:
            await TokenRepo(session).touch(token_id)
            await session.commit()

    async def provision_delegated_client(
        self, *, api_key: str, name: str, rate_limit: int
    ) -> CallerIdentity:
        async with self._session_factory() as session:
            try:
                row = await ClientRepo(session).create(
                    name=name,
                    client_type=ClientType.oauth,
                    api_key=api_key,
                    rate_limit=str(rate_limit),
                )
                identity = identity_from_row(row)
                await session.commit()
                return identity
            except IntegrityError:
                # Lost a first-sight race on the unique key; the winner's row is authoritative.
                await session.rollback()
        existing = await self.find_client_by_key(api_key)
        if existing is None:
            raise RuntimeError(f"delegated client {api_key!r} vanished after conflict")
        return existing.identity

    async def find_function_by_identifier(self, identifier: str) -> FunctionDefinition | None:
        async with self._session_factory() as session:
            row = await FunctionRepo(session).get_by_identifier(identifier)
            return definition_from_row(row) if row is not None else None

    async def find_active_function_by_identifier(
        self, identifier: str
    ) -> FunctionDefinition | None:
        async with self._session_factory() as session:
            row = await FunctionRepo(session).get_by_identifier(identifier, active_only=True)
            return definition_from_row(row) if row is not None else None

    async def list_active_function_identifiers(self) -> list[str]:
        async with self._session_factory() as session:
            return await FunctionRepo(session).list_active_identifiers()

    async def find_roles_for_client(self, client_id: int) -> frozenset[int]:
        async with self._session_factory() as session:
            return await ClientRepo(session).role_ids(client_id)

    async def find_permissions_for_role(self, role_id: int) -> list[PermissionGrant]:
        async with self._session_factory() as session:
            rows = await PermissionRepo(session).for_role(role_id)
            return [
                PermissionGrant(
                    resource_type=p.resource_type,
                    resource_id=p.resource_id,
                    action=p.action,
                )
                for p in rows
            ]

    async def find_client_ids_for_role(self, role_id: int) -> list[int]:
        async with self._session_factory() as session:
            return await ClientRepo(session).ids_for_role(role_id)


# --- Module Notes -----------------------------------------------------------
# Rows are mapped while the session is open; nothing lazy-loads after the block exits.
