"""
Visitas API: Pydantic Request/Response Schemas
==============================================

What:  Pydantic models defining the HTTP contract of the visits endpoints.
Why:   Type coercion of the JSON body, OpenAPI documentation, and one place
       that records the positional parameter order of each stored procedure.

Design Decision:
    Every body field is optional at the schema level. Whether a field is
    required is a presence check done by VisitService, so that a missing
    field produces the documented 400 message instead of a schema error.
    Field names match the stored procedure parameter names used by clients.
"""

from decimal import Decimal
from typing import Any, ClassVar, List, Optional, Tuple, Union

from pydantic import BaseModel, Field


class _ProcedureBody(BaseModel):
    """Shared behaviour for bodies that map onto stored procedure parameters."""

    # Positional order of the procedure parameters taken from the body
    PARAMETER_ORDER: ClassVar[Tuple[str, ...]] = ()
    # Fields that must be present and truthy
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = ()

    model_config = {"extra": "ignore"}

    def missing_required(self) -> List[str]:
        """Returns the required fields that are absent or falsy, in order."""
        return [name for name in self.REQUIRED_FIELDS if not getattr(self, name)]

    def procedure_params(self) -> List[Any]:
        return [getattr(self, name) for name in self.PARAMETER_ORDER]


class VisitCreate(_ProcedureBody):
    """
    Body of POST /Visitas/insertar.

    Example:
        {
            "PI_COD_PERSONA": 1,
            "PV_HORA_SALIDA": "2025-06-30 18:00:00",
            "PV_MOTIVO_VISITA": "Consulta general",
            "PV_OBSERVACIONES": "Ninguna",
            "PI_CANTIDAD_ADULTOS": 2,
            "PI_CANTIDAD_NINOS": 1,
            "PD_PRECIO_ENTRADA_ADULTO": 10.50,
            "PD_PRECIO_ENTRADA_NINO": 5.25,
            "PI_COD_BOSQUE": 1,
            "PI_COD_ACCESO": 1
        }
    """

    PARAMETER_ORDER: ClassVar[Tuple[str, ...]] = (
        "PI_COD_PERSONA",
        "PV_HORA_SALIDA",
        "PV_MOTIVO_VISITA",
        "PV_OBSERVACIONES",
        "PI_CANTIDAD_ADULTOS",
        "PI_CANTIDAD_NINOS",
        "PD_PRECIO_ENTRADA_ADULTO",
        "PD_PRECIO_ENTRADA_NINO",
        "PI_COD_BOSQUE",
        "PI_COD_ACCESO",
    )
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "PI_COD_PERSONA",
        "PV_MOTIVO_VISITA",
        "PI_CANTIDAD_ADULTOS",
        "PI_COD_BOSQUE",
    )

    PI_COD_PERSONA: Optional[int] = Field(default=None, description="Visiting person code")
    PV_HORA_SALIDA: Optional[str] = Field(
        default=None, description="Departure time, 'YYYY-MM-DD HH:MM:SS'"
    )
    PV_MOTIVO_VISITA: Optional[str] = Field(default=None, description="Reason for the visit")
    PV_OBSERVACIONES: Optional[str] = Field(default=None, description="Free-text observations")
    PI_CANTIDAD_ADULTOS: Optional[int] = Field(default=None, description="Number of adults")
    PI_CANTIDAD_NINOS: Optional[int] = Field(default=None, description="Number of children")
    PD_PRECIO_ENTRADA_ADULTO: Optional[Decimal] = Field(
        default=None, description="Adult ticket price"
    )
    PD_PRECIO_ENTRADA_NINO: Optional[Decimal] = Field(
        default=None, description="Child ticket price"
    )
    PI_COD_BOSQUE: Optional[int] = Field(default=None, description="Forest code")
    PI_COD_ACCESO: Optional[int] = Field(default=None, description="Access point code")


class VisitUpdate(_ProcedureBody):
    """
    Body of PUT /Visitas/{cod_visita}.

    Only the non-key fields can change; person, forest and access codes are
    fixed once the visit exists and are ignored if sent.
    """

    PARAMETER_ORDER: ClassVar[Tuple[str, ...]] = (
        "PV_HORA_SALIDA",
        "PV_MOTIVO_VISITA",
        "PV_OBSERVACIONES",
        "PI_CANTIDAD_ADULTOS",
        "PI_CANTIDAD_NINOS",
        "PD_PRECIO_ENTRADA_ADULTO",
        "PD_PRECIO_ENTRADA_NINO",
    )
    REQUIRED_FIELDS: ClassVar[Tuple[str, ...]] = (
        "PV_MOTIVO_VISITA",
        "PI_CANTIDAD_ADULTOS",
    )

    PV_HORA_SALIDA: Optional[str] = Field(default=None)
    PV_MOTIVO_VISITA: Optional[str] = Field(default=None)
    PV_OBSERVACIONES: Optional[str] = Field(default=None)
    PI_CANTIDAD_ADULTOS: Optional[int] = Field(default=None)
    PI_CANTIDAD_NINOS: Optional[int] = Field(default=None)
    PD_PRECIO_ENTRADA_ADULTO: Optional[Decimal] = Field(default=None)
    PD_PRECIO_ENTRADA_NINO: Optional[Decimal] = Field(default=None)

    def procedure_params_for(self, cod_visita: int) -> List[Any]:
        """The visit identifier goes first, followed by the seven fields."""
        return [cod_visita, *self.procedure_params()]


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class MessageResponse(BaseModel):
    """Success body of insert and update: the procedure's own message."""
    message: str = Field(description="Message reported by the stored procedure")


class ErrorResponse(BaseModel):
    """
    What:  Error body shared by every endpoint.

    Fields:
        error: Machine-readable error code (e.g., "validation_error", "not_found")
        message: Human-readable description
        details: Optional extra context (e.g., missing_fields)
        sql_state / mysql_errno: Diagnostic codes forwarded from a stored
            procedure failure; omitted when the procedure supplied none
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    sql_state: Optional[str] = Field(default=None, description="SQLSTATE from the procedure")
    mysql_errno: Optional[Union[int, str]] = Field(default=None, description="MySQL error number")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Readiness of the service: is the database connection established?"""
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    uptime_seconds: float = Field(description="Seconds since service started")


class ServiceInfoResponse(BaseModel):
    name: str
    version: str
    docs: str
    visits: str
