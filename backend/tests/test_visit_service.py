"""
Visitas API: Visit Service Unit Tests
=====================================

What:  Tests for VisitService (list, insert, update) without HTTP.
How:   The stored procedure client is an AsyncMock from conftest.

What we test:
    ✅ Presence checks reject before any database call
    ✅ Parameters are passed in the procedures' positional order
    ✅ Status rows map to success, NotFoundError or ProcedureError
    ✅ Unexpected result shapes fall back to generic success messages
    ✅ Transport errors from the client propagate unchanged
"""

from decimal import Decimal

import pytest

from visitas_api.exceptions import (
    DatabaseError,
    NotFoundError,
    ProcedureError,
    ValidationError,
)
from visitas_api.schemas.visit import VisitCreate, VisitUpdate
from visitas_api.services.visit_service import VisitService


class TestListVisits:

    def setup_method(self):
        self.service = VisitService()

    @pytest.mark.asyncio
    async def test_returns_rows(self, procedure_client):
        rows = [{"COD_VISITA": 1}, {"COD_VISITA": 2}]
        procedure_client.call.return_value = rows

        result = await self.service.list_visits(procedure_client)

        assert result == rows
        procedure_client.call.assert_awaited_once()
        assert procedure_client.call.await_args.args == ("SEL_VISITAS",)

    @pytest.mark.asyncio
    async def test_empty_result_set_is_not_found(self, procedure_client):
        procedure_client.call.return_value = []

        with pytest.raises(NotFoundError, match="No se encontraron visitas"):
            await self.service.list_visits(procedure_client)

    @pytest.mark.asyncio
    async def test_no_result_set_is_not_found(self, procedure_client):
        procedure_client.call.return_value = None

        with pytest.raises(NotFoundError):
            await self.service.list_visits(procedure_client)

    @pytest.mark.asyncio
    async def test_database_error_propagates(self, procedure_client):
        procedure_client.call.side_effect = DatabaseError(message="Error al obtener las visitas.")

        with pytest.raises(DatabaseError, match="Error al obtener las visitas."):
            await self.service.list_visits(procedure_client)


class TestInsertVisit:

    def setup_method(self):
        self.service = VisitService()

    @pytest.mark.asyncio
    async def test_success_returns_procedure_message(self, procedure_client, visit_payload):
        procedure_client.call.return_value = [
            {"status": "SUCCESS", "message": "Visita insertada correctamente."}
        ]

        result = await self.service.insert_visit(procedure_client, VisitCreate(**visit_payload))

        assert result.message == "Visita insertada correctamente."

    @pytest.mark.asyncio
    async def test_parameters_in_procedure_order(self, procedure_client, visit_payload):
        procedure_client.call.return_value = [{"status": "SUCCESS", "message": "ok"}]

        await self.service.insert_visit(procedure_client, VisitCreate(**visit_payload))

        args = procedure_client.call.await_args
        assert args.args[0] == "INS_VISITAs"
        assert args.args[1] == [
            1,
            "2025-06-30 18:00:00",
            "Consulta general",
            "Ninguna",
            2,
            1,
            Decimal("10.50"),
            Decimal("5.25"),
            3,
            4,
        ]
        assert args.kwargs["error_message"] == "Error al insertar la visita."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "field",
        ["PI_COD_PERSONA", "PV_MOTIVO_VISITA", "PI_CANTIDAD_ADULTOS", "PI_COD_BOSQUE"],
    )
    async def test_missing_required_field_rejected(self, procedure_client, visit_payload, field):
        del visit_payload[field]

        with pytest.raises(ValidationError) as exc_info:
            await self.service.insert_visit(procedure_client, VisitCreate(**visit_payload))

        assert exc_info.value.missing_fields == [field]
        procedure_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_falsy_adult_count_rejected(self, procedure_client, visit_payload):
        visit_payload["PI_CANTIDAD_ADULTOS"] = 0

        with pytest.raises(ValidationError, match="Faltan campos obligatorios"):
            await self.service.insert_visit(procedure_client, VisitCreate(**visit_payload))

        procedure_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_fields_are_all_listed(self, procedure_client):
        with pytest.raises(ValidationError) as exc_info:
            await self.service.insert_visit(procedure_client, VisitCreate())

        assert exc_info.value.missing_fields == [
            "PI_COD_PERSONA",
            "PV_MOTIVO_VISITA",
            "PI_CANTIDAD_ADULTOS",
            "PI_COD_BOSQUE",
        ]

    @pytest.mark.asyncio
    async def test_procedure_failure_carries_diagnostics(self, procedure_client, visit_payload):
        procedure_client.call.return_value = [
            {
                "status": "ERROR",
                "message": "Error al insertar: la persona no existe.",
                "sql_state": "23000",
                "mysql_errno": 1452,
            }
        ]

        with pytest.raises(ProcedureError) as exc_info:
            await self.service.insert_visit(procedure_client, VisitCreate(**visit_payload))

        assert exc_info.value.message == "Error al insertar: la persona no existe."
        assert exc_info.value.sql_state == "23000"
        assert exc_info.value.mysql_errno == 1452
        assert exc_info.value.procedure == "INS_VISITAs"

    @pytest.mark.asyncio
    async def test_no_status_row_gives_generic_message(self, procedure_client, visit_payload):
        procedure_client.call.return_value = None

        result = await self.service.insert_visit(procedure_client, VisitCreate(**visit_payload))

        assert result.message == "Visita insertada con éxito (respuesta genérica)."


class TestUpdateVisit:

    def setup_method(self):
        self.service = VisitService()

    @pytest.mark.asyncio
    async def test_success(self, procedure_client, update_payload):
        procedure_client.call.return_value = [
            {"status": "SUCCESS", "message": "Visita actualizada correctamente."}
        ]

        result = await self.service.update_visit(
            procedure_client, 42, VisitUpdate(**update_payload)
        )

        assert result.message == "Visita actualizada correctamente."

    @pytest.mark.asyncio
    async def test_parameters_start_with_visit_code(self, procedure_client, update_payload):
        procedure_client.call.return_value = [{"status": "SUCCESS", "message": "ok"}]

        await self.service.update_visit(procedure_client, 42, VisitUpdate(**update_payload))

        args = procedure_client.call.await_args
        assert args.args[0] == "UPD_VISITAS"
        assert args.args[1] == [
            42,
            "2025-07-01 10:00:00",
            "Revisión de seguridad",
            "Ruta despejada",
            3,
            0,
            Decimal("12.00"),
            Decimal("6.00"),
        ]

    @pytest.mark.asyncio
    async def test_key_fields_are_not_forwarded(self, procedure_client, update_payload):
        procedure_client.call.return_value = [{"status": "SUCCESS", "message": "ok"}]
        update_payload["PI_COD_PERSONA"] = 99
        update_payload["PI_COD_BOSQUE"] = 99

        await self.service.update_visit(procedure_client, 7, VisitUpdate(**update_payload))

        assert len(procedure_client.call.await_args.args[1]) == 8
        assert 99 not in procedure_client.call.await_args.args[1]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["PV_MOTIVO_VISITA", "PI_CANTIDAD_ADULTOS"])
    async def test_missing_required_field_rejected(self, procedure_client, update_payload, field):
        update_payload[field] = None

        with pytest.raises(ValidationError, match="actualizar la visita"):
            await self.service.update_visit(procedure_client, 1, VisitUpdate(**update_payload))

        procedure_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_found_message_raises_not_found(self, procedure_client, update_payload):
        procedure_client.call.return_value = [
            {"status": "ERROR", "message": "No se encontró la visita con el código 42."}
        ]

        with pytest.raises(NotFoundError) as exc_info:
            await self.service.update_visit(procedure_client, 42, VisitUpdate(**update_payload))

        assert exc_info.value.message == "No se encontró la visita con el código 42."

    @pytest.mark.asyncio
    async def test_other_failure_raises_procedure_error(self, procedure_client, update_payload):
        procedure_client.call.return_value = [
            {
                "status": "ERROR",
                "message": "Error al actualizar la visita.",
                "sql_state": "45000",
                "mysql_errno": 1644,
            }
        ]

        with pytest.raises(ProcedureError) as exc_info:
            await self.service.update_visit(procedure_client, 42, VisitUpdate(**update_payload))

        assert exc_info.value.sql_state == "45000"
        assert exc_info.value.mysql_errno == 1644

    @pytest.mark.asyncio
    async def test_no_status_row_gives_generic_message(self, procedure_client, update_payload):
        procedure_client.call.return_value = [{"filas_afectadas": 1}]

        result = await self.service.update_visit(
            procedure_client, 42, VisitUpdate(**update_payload)
        )

        assert result.message == "Visita actualizada con éxito (respuesta genérica)."
