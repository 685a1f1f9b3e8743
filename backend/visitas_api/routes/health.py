"""
Visitas API: Health Check and Service Info Routes
=================================================

What:  GET /health readiness probe and GET / service information.
Why:   The database handshake runs in the background after startup, so a
       load balancer needs a way to tell when the service can answer
       visit requests.
How:   Reads the Connection Holder only. No query is issued, so probing
       does not consume pool connections.

Status levels:
    - healthy:   connection established (HTTP 200)
    - unhealthy: connection not established yet or failed (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from visitas_api import __version__
from visitas_api.config import settings
from visitas_api.database import ConnectionHolder, get_connection_holder
from visitas_api.schemas.visit import HealthResponse, ServiceInfoResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/",
    response_model=ServiceInfoResponse,
    summary="Service information",
)
async def service_info() -> ServiceInfoResponse:
    return ServiceInfoResponse(
        name="Visitas API",
        version=__version__,
        docs="/docs",
        visits=settings.visits_prefix,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database connection not established", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(
    response: Response,
    holder: ConnectionHolder = Depends(get_connection_holder),
) -> HealthResponse:
    if holder.is_ready:
        db_status, overall = "connected", "healthy"
    else:
        db_status, overall = "disconnected", "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database connection not established")

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
