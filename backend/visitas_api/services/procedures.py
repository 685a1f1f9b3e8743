"""
Visitas API: Stored Procedure Client
====================================

What:  Executes one `CALL NAME(...)` round trip and reads its first result set.
Why:   Every visit operation is a single stored procedure call with positional
       parameters. Keeping the driver interaction here means the service layer
       never sees SQLAlchemy exceptions or result objects.
How:   Binds the parameters as :p0..:pN, runs the call inside engine.begin()
       so data-modifying procedures are committed, and bounds the whole
       transaction (checkout, CALL, COMMIT) with asyncio.wait_for.

Outcome classification:
    - Driver error or timeout → DatabaseError (details in context, logged by
      the global handler; the client gets the generic message)
    - No result set           → None
    - Result set              → list of {column: value} dicts
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi import Depends
from pydantic import TypeAdapter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from visitas_api.config import settings
from visitas_api.database import get_engine
from visitas_api.exceptions import DatabaseError
from visitas_api.schemas.procedure import (
    ProcedureFailure,
    ProcedureOutcome,
    ProcedureSuccess,
)

logger = logging.getLogger(__name__)

# Procedure names are interpolated into the statement, so only plain identifiers
_PROCEDURE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_outcome_adapter = TypeAdapter(ProcedureOutcome)

Row = Dict[str, Any]


class StoredProcedureClient:
    """
    Thin async wrapper around an engine for stored procedure calls.

    Stateless apart from the engine reference: a new instance is built for
    each request by get_procedure_client().
    """

    def __init__(self, engine: AsyncEngine, timeout: float = 30.0):
        self._engine = engine
        self._timeout = timeout

    @staticmethod
    def build_statement(procedure: str, param_count: int):
        if not _PROCEDURE_NAME.match(procedure):
            raise ValueError(f"Invalid stored procedure name: {procedure!r}")
        placeholders = ", ".join(f":p{i}" for i in range(param_count))
        return text(f"CALL {procedure}({placeholders})")

    async def call(
        self,
        procedure: str,
        params: Sequence[Any] = (),
        error_message: str = "A database error occurred. Please try again later.",
    ) -> Optional[List[Row]]:
        """
        Call `procedure` with `params` in positional order.

        Args:
            procedure: Stored procedure name, e.g. "SEL_VISITAS"
            params: Positional parameter values
            error_message: Client-facing message used if the call fails

        Returns:
            The first result set as a list of dicts, or None when the
            procedure produced no result set.

        Raises:
            DatabaseError: the driver raised, or the call exceeded the timeout.
        """
        statement = self.build_statement(procedure, len(params))
        bind = {f"p{i}": value for i, value in enumerate(params)}

        async def _round_trip() -> Optional[List[Row]]:
            async with self._engine.begin() as conn:
                result = await conn.execute(statement, bind)
                if not result.returns_rows:
                    return None
                return [dict(row) for row in result.mappings().all()]

        try:
            # Bounds pool checkout, execution and COMMIT together
            return await asyncio.wait_for(_round_trip(), timeout=self._timeout)

        except asyncio.TimeoutError as e:
            raise DatabaseError(
                message=error_message,
                context={
                    "procedure": procedure,
                    "error": f"call exceeded {self._timeout}s timeout",
                },
            ) from e
        except SQLAlchemyError as e:
            raise DatabaseError(
                message=error_message,
                context={"procedure": procedure, "error": str(e)},
            ) from e


def parse_status_row(
    rows: Optional[List[Row]],
) -> Optional[Union[ProcedureSuccess, ProcedureFailure]]:
    """
    Interpret the status row of an insert/update procedure.

    Returns:
        ProcedureSuccess when `status` is "SUCCESS" (any case),
        ProcedureFailure for any other status value,
        None when there is no row or the first row has no `status` column.
    """
    if not rows:
        return None
    row = rows[0]
    if "status" not in row:
        return None

    status = str(row["status"] or "").strip().upper()
    message = row.get("message")
    message = "" if message is None else str(message)

    if status == "SUCCESS":
        return _outcome_adapter.validate_python({"status": "success", "message": message})

    sql_state = row.get("sql_state")
    return _outcome_adapter.validate_python(
        {
            "status": "failure",
            "message": message,
            "sql_state": None if sql_state is None else str(sql_state),
            "mysql_errno": row.get("mysql_errno"),
        }
    )


def get_procedure_client(engine: AsyncEngine = Depends(get_engine)) -> StoredProcedureClient:
    """FastAPI dependency: a client bound to the established engine."""
    return StoredProcedureClient(engine, timeout=settings.db_call_timeout)
