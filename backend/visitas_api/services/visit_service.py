"""
Visitas API: Visit Service
==========================

What:  The three visit operations: list, insert, update.
Why:   Keeps presence checks, parameter ordering and outcome classification
       out of the HTTP layer so they can be tested without a server.
How:   Each operation makes exactly one stored procedure call through a
       StoredProcedureClient and maps the result onto a return value or an
       application exception.

Outcome classification (per call):
    1. Validation rejection   → ValidationError, before any database access
    2. Procedure-reported     → success message, NotFoundError or ProcedureError
    3. Transport failure      → DatabaseError raised by the client

Design Decision:
    VisitService is stateless. The client is passed to each call, so tests
    can hand in an AsyncMock and each request uses its own client.
"""

import logging
from typing import Any, Dict, List

from visitas_api.exceptions import NotFoundError, ProcedureError, ValidationError
from visitas_api.schemas.procedure import ProcedureSuccess
from visitas_api.schemas.visit import MessageResponse, VisitCreate, VisitUpdate
from visitas_api.services.procedures import StoredProcedureClient, parse_status_row

logger = logging.getLogger(__name__)

SELECT_PROCEDURE = "SEL_VISITAS"
INSERT_PROCEDURE = "INS_VISITAs"
UPDATE_PROCEDURE = "UPD_VISITAS"

# UPD_VISITAS reports a missing target with a message starting like this
VISIT_NOT_FOUND_MARKER = "No se encontró la visita"


class VisitService:
    """
    Business operations on visits.

    Responsibilities:
        - list_visits(): all visits via SEL_VISITAS
        - insert_visit(): create via INS_VISITAs (10 parameters)
        - update_visit(): modify non-key fields via UPD_VISITAS (8 parameters)
    """

    async def list_visits(self, client: StoredProcedureClient) -> List[Dict[str, Any]]:
        """
        Return every visit row produced by SEL_VISITAS.

        Raises:
            NotFoundError: the call returned no result set or an empty one
            DatabaseError: the call itself failed
        """
        rows = await client.call(
            SELECT_PROCEDURE,
            error_message="Error al obtener las visitas.",
        )
        if not rows:
            raise NotFoundError(
                message="No se encontraron visitas o el formato de respuesta es inesperado.",
                context={"procedure": SELECT_PROCEDURE},
            )
        logger.info("Listed %d visits", len(rows))
        return rows

    async def insert_visit(
        self,
        client: StoredProcedureClient,
        visit: VisitCreate,
    ) -> MessageResponse:
        """
        Create a visit.

        Raises:
            ValidationError: PI_COD_PERSONA, PV_MOTIVO_VISITA,
                PI_CANTIDAD_ADULTOS or PI_COD_BOSQUE missing or falsy
            ProcedureError: INS_VISITAs reported a failure
            DatabaseError: the call itself failed
        """
        missing = visit.missing_required()
        if missing:
            raise ValidationError(
                message="Faltan campos obligatorios para insertar la visita.",
                missing_fields=missing,
            )

        rows = await client.call(
            INSERT_PROCEDURE,
            visit.procedure_params(),
            error_message="Error al insertar la visita.",
        )

        outcome = parse_status_row(rows)
        if outcome is None:
            # Procedures that do not report a status row are taken as success
            return MessageResponse(message="Visita insertada con éxito (respuesta genérica).")
        if isinstance(outcome, ProcedureSuccess):
            logger.info("Visit inserted: %s", outcome.message)
            return MessageResponse(message=outcome.message)

        logger.error("%s reported an error: %s", INSERT_PROCEDURE, outcome.message)
        raise ProcedureError(
            message=outcome.message,
            procedure=INSERT_PROCEDURE,
            sql_state=outcome.sql_state,
            mysql_errno=outcome.mysql_errno,
        )

    async def update_visit(
        self,
        client: StoredProcedureClient,
        cod_visita: int,
        changes: VisitUpdate,
    ) -> MessageResponse:
        """
        Update the non-key fields of visit `cod_visita`.

        Raises:
            ValidationError: PV_MOTIVO_VISITA or PI_CANTIDAD_ADULTOS missing
            NotFoundError: UPD_VISITAS reported that no visit matched
            ProcedureError: UPD_VISITAS reported any other failure
            DatabaseError: the call itself failed
        """
        missing = changes.missing_required()
        if missing:
            raise ValidationError(
                message="Faltan campos obligatorios para actualizar la visita.",
                missing_fields=missing,
            )

        rows = await client.call(
            UPDATE_PROCEDURE,
            changes.procedure_params_for(cod_visita),
            error_message="Error al actualizar la visita.",
        )

        outcome = parse_status_row(rows)
        if outcome is None:
            return MessageResponse(message="Visita actualizada con éxito (respuesta genérica).")
        if isinstance(outcome, ProcedureSuccess):
            logger.info("Visit %d updated: %s", cod_visita, outcome.message)
            return MessageResponse(message=outcome.message)

        logger.error("%s reported an error: %s", UPDATE_PROCEDURE, outcome.message)
        if outcome.mentions(VISIT_NOT_FOUND_MARKER):
            raise NotFoundError(
                message=outcome.message,
                context={"procedure": UPDATE_PROCEDURE, "cod_visita": cod_visita},
            )
        raise ProcedureError(
            message=outcome.message,
            procedure=UPDATE_PROCEDURE,
            sql_state=outcome.sql_state,
            mysql_errno=outcome.mysql_errno,
        )


# Module-level instance used by the routes
visit_service = VisitService()
