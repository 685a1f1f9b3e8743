"""
Visitas API: Visit Route Handlers
=================================

What:  GET /Visitas (list), POST /Visitas/insertar (create),
       PUT /Visitas/{cod_visita} (update).
How:   Each handler resolves a StoredProcedureClient (which fails fast with
       500 while the database connection is not ready), delegates to
       VisitService, and returns its result. Errors are raised as application
       exceptions and formatted by the global handlers in main.py.
"""

import logging
from typing import Any, Callable, Dict, List, Type, TypeVar

from fastapi import APIRouter, Depends, Path, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from pydantic import ValidationError as SchemaValidationError

from visitas_api.config import settings
from visitas_api.schemas.visit import (
    ErrorResponse,
    MessageResponse,
    VisitCreate,
    VisitUpdate,
)
from visitas_api.services.procedures import StoredProcedureClient, get_procedure_client
from visitas_api.services.visit_service import visit_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix=settings.visits_prefix, tags=["Visitas"])

BodyT = TypeVar("BodyT", bound=BaseModel)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def _body_error(error_type: str, msg: str, loc=("body",), value: Any = None) -> RequestValidationError:
    return RequestValidationError([{"type": error_type, "loc": loc, "msg": msg, "input": value}])


def procedure_body(model: Type[BodyT]) -> Callable[..., Any]:
    """
    Dependency factory reading a visit body as JSON or as an urlencoded form.

    Form values arrive as strings and are coerced by the model like JSON
    values. Empty form values count as absent, so the service reports them
    as missing fields. Schema errors surface as RequestValidationError and
    are answered with 400 by the global handler.
    """

    async def parse(request: Request) -> BodyT:
        content_type = request.headers.get("content-type", "")
        if content_type.startswith(FORM_CONTENT_TYPE):
            form = await request.form()
            data = {key: value for key, value in form.items() if value != ""}
        elif not await request.body():
            data = {}
        else:
            try:
                data = await request.json()
            except ValueError as e:
                raise _body_error("json_invalid", "JSON decode error", value=str(e)) from e
            if not isinstance(data, dict):
                raise _body_error("model_attributes_type", "Input should be an object", value=data)

        try:
            return model.model_validate(data)
        except SchemaValidationError as e:
            raise RequestValidationError(
                [{**err, "loc": ("body", *err["loc"])} for err in e.errors(include_url=False)]
            ) from e

    return parse


def _request_body_docs(model: Type[BaseModel]) -> Dict[str, Any]:
    schema = model.model_json_schema()
    return {
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {"schema": schema},
                FORM_CONTENT_TYPE: {"schema": schema},
            },
        }
    }


@router.get("", include_in_schema=False)
@router.get(
    "/",
    response_model=List[Dict[str, Any]],
    responses={
        200: {"description": "Every visit returned by SEL_VISITAS"},
        404: {"description": "No visits or unexpected result shape", "model": ErrorResponse},
        500: {"description": "Database error", "model": ErrorResponse},
    },
    summary="List all visits",
)
async def list_visits(
    client: StoredProcedureClient = Depends(get_procedure_client),
) -> List[Dict[str, Any]]:
    """Rows are returned as produced by the procedure, one object per visit."""
    return await visit_service.list_visits(client)


@router.post(
    "/insertar",
    status_code=201,
    response_model=MessageResponse,
    responses={
        201: {"description": "Visit created", "model": MessageResponse},
        400: {"description": "Missing required fields", "model": ErrorResponse},
        500: {"description": "Procedure or database error", "model": ErrorResponse},
    },
    summary="Create a visit",
    description=(
        "Calls INS_VISITAs with the ten body fields in order. PI_COD_PERSONA, "
        "PV_MOTIVO_VISITA, PI_CANTIDAD_ADULTOS and PI_COD_BOSQUE are required. "
        "JSON and urlencoded form bodies are accepted."
    ),
    openapi_extra=_request_body_docs(VisitCreate),
)
async def insert_visit(
    visit: VisitCreate = Depends(procedure_body(VisitCreate)),
    client: StoredProcedureClient = Depends(get_procedure_client),
) -> MessageResponse:
    return await visit_service.insert_visit(client, visit)


@router.put(
    "/{cod_visita}",
    response_model=MessageResponse,
    responses={
        200: {"description": "Visit updated", "model": MessageResponse},
        400: {"description": "Invalid id or missing required fields", "model": ErrorResponse},
        404: {"description": "No visit with that id", "model": ErrorResponse},
        500: {"description": "Procedure or database error", "model": ErrorResponse},
    },
    summary="Update a visit",
    description=(
        "Calls UPD_VISITAS with the visit id followed by the seven updatable "
        "fields. Person, forest and access codes cannot be changed."
    ),
    openapi_extra=_request_body_docs(VisitUpdate),
)
async def update_visit(
    changes: VisitUpdate = Depends(procedure_body(VisitUpdate)),
    cod_visita: int = Path(description="Visit code assigned by the database"),
    client: StoredProcedureClient = Depends(get_procedure_client),
) -> MessageResponse:
    """
    A non-integer `cod_visita` is rejected by FastAPI's path validation and
    reported as 400 by the RequestValidationError handler.
    """
    return await visit_service.update_visit(client, cod_visita, changes)
