"""
Visitas API: FastAPI Application Factory
========================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers, and
       attaches an empty ConnectionHolder to app.state.
Who:   uvicorn (`uvicorn visitas_api.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  Middleware:  Request ID → Logging → CORS           │
    │                                                     │
    │  Routes:                                            │
    │    GET /Visitas   POST /Visitas/insertar            │
    │    PUT /Visitas/{cod_visita}   GET /   GET /health  │
    │                                                     │
    │  Exception Handlers:                                │
    │    Validation→400 │ NotFound→404 │ Procedure/DB→500 │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Configure logging
    2. Schedule the database handshake in the background; the listener is
       already serving (requests get 500 until the holder is populated)

    Shutdown:
    1. Cancel the handshake if it is still running
    2. Dispose the engine held by the ConnectionHolder
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from visitas_api import __version__
from visitas_api.config import settings
from visitas_api.database import ConnectionHolder, connect_database, dispose_holder
from visitas_api.exceptions import (
    DatabaseError,
    DatabaseUnavailableError,
    NotFoundError,
    ProcedureError,
    ValidationError,
    VisitasError,
)
from visitas_api.middleware.logging import RequestLoggingMiddleware
from visitas_api.middleware.request_id import RequestIDMiddleware, request_id_var
from visitas_api.routes import health, visits

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Output: stdout (captured by the container runtime)
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that log every operation at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiomysql").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

def _log_handshake_exception(task: "asyncio.Task[bool]") -> None:
    """Nothing awaits the handshake task, so its exception is logged here."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "Database handshake task crashed: %s",
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup schedules the database handshake without awaiting it, so the
    server starts accepting requests immediately. Handlers consult the
    ConnectionHolder and answer 500 until the handshake has completed.
    """
    setup_logging()
    logger.info("Visitas API %s starting up...", __version__)

    holder: ConnectionHolder = app.state.db
    connect_task = asyncio.create_task(connect_database(holder, settings))
    connect_task.add_done_callback(_log_handshake_exception)
    app.state.db_connect_task = connect_task

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("Visits mounted at %s", settings.visits_prefix)

    yield

    logger.info("Visitas API shutting down...")
    if not connect_task.done():
        connect_task.cancel()
        try:
            await connect_task
        except asyncio.CancelledError:
            logger.info("Database handshake cancelled during shutdown")
    await dispose_holder(holder)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(status_code: int, error: str, message: str, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"error": error, "message": message}
    content.update({key: value for key, value in extra.items() if value is not None})
    content["request_id"] = request_id_var.get("")
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and JSON error bodies.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        NotFoundError                            → 404
        ProcedureError                           → 500 (message + diagnostic codes)
        DatabaseUnavailableError                 → 500 (connection not ready)
        DatabaseError                            → 500 (generic message)
        VisitasError (base)                      → 500
        Exception (fallback)                     → 500

    Driver details (SQL, connection errors) are logged here and never
    returned to the client.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context or None)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Schema-level errors (bad JSON types, non-integer id) are client errors: 400."""
        errors = exc.errors()
        if any(tuple(err.get("loc", ()))[:2] == ("path", "cod_visita") for err in errors):
            message = "ID de visita inválido. Debe ser un número."
        else:
            message = "Cuerpo de la solicitud inválido."
        logger.warning("[%s] Request validation error: %s", request_id_var.get(""), message)
        return _error_response(400, "validation_error", message, details={"errors": errors})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(ProcedureError)
    async def handle_procedure_error(request: Request, exc: ProcedureError):
        logger.error(
            "[%s] Procedure error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(
            500,
            "procedure_error",
            exc.message,
            sql_state=exc.sql_state,
            mysql_errno=exc.mysql_errno,
        )

    @app.exception_handler(DatabaseUnavailableError)
    async def handle_database_unavailable(request: Request, exc: DatabaseUnavailableError):
        logger.error("[%s] %s", request_id_var.get(""), exc.message)
        return _error_response(500, "database_unavailable", exc.message)

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error(
            "[%s] Database error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(VisitasError)
    async def handle_app_error(request: Request, exc: VisitasError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace goes to the log only."""
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Each call returns an independent app with its own empty ConnectionHolder,
    which lets tests build fresh apps without touching a database.
    """
    app = FastAPI(
        title="Visitas API",
        description=(
            "List, create and update forest visits. Every operation is a single "
            "call to a MySQL stored procedure."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.db = ConnectionHolder()

    # Middleware executes in reverse order of addition:
    # RequestID → Logging → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(visits.router)

    return app


# uvicorn expects `visitas_api.main:app` to be importable
app = create_app()
