"""
procgate.execution

Downstream executor boundary.

Responsibilities:
- Declare `ProcedureExecutor.execute(definition, params) -> {"data": ...}`.
- Define `DownstreamError`, whose `code` is looked up in the function's error mappings.
- Provide a SQLAlchemy executor that issues `CALL <procedure>(...)` with bound parameters.
"""

from __future__ import annotations

import re
from typing import Any, Protocol

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine

from procgate.functions.definitions import FunctionDefinition
from procgate.functions.params import to_procedure_args

_PROCEDURE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class DownstreamError(Exception):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class ProcedureExecutor(Protocol):
    async def execute(
        self, definition: FunctionDefinition, params: dict[str, Any]
    ) -> dict[str, Any]: ...


def _error_code(exc: DBAPIError) -> str:
    orig = exc.orig
    # MySQL drivers put the vendor code first; psycopg exposes `sqlstate`.
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate:
        return str(sqlstate)
    args = getattr(orig, "args", ())
    if args and isinstance(args[0], (int, str)):
        return str(args[0])
    return "DB_ERROR"


class SqlProcedureExecutor:
    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def execute(
        self, definition: FunctionDefinition, params: dict[str, Any]
    ) -> dict[str, Any]:
        if not _PROCEDURE_NAME.match(definition.stored_procedure):
            raise DownstreamError("INVALID_PROCEDURE", "Stored procedure name is not allowed")

        args = to_procedure_args(definition, params)
        # Bind names are positional placeholders; the procedure sees arguments in order.
        binds = {f"p{i}": value for i, value in enumerate(args.values())}
        placeholders = ", ".join(f":{name}" for name in binds)
        stmt = text(f"CALL {definition.stored_procedure}({placeholders})")

        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(stmt, binds)
                rows = [dict(row) for row in result.mappings()] if result.returns_rows else []
        except DBAPIError as e:
            raise DownstreamError(_error_code(e), str(e.orig)) from e
        return {"data": rows}


# --- Module Notes -----------------------------------------------------------
# Result shaping (response mappings, transforms) belongs to the executor deployment;
# this implementation returns rows as the driver produced them.
