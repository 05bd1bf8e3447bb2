"""
SpecDate Backend — Health Check Route
=======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database and reports the outbound gateways' breaker state.
Who:   Docker health checks, load balancers, uptime monitors.

Status levels:
    - healthy:   database reachable, gateways closed or disabled (HTTP 200)
    - degraded:  a gateway circuit is open; requests still work (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)

Push and broadcast are side channels: their failures never block the API,
so they can only degrade the status, never make it unhealthy.
"""

import logging
import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app import __version__
from app.database import engine
from app.schemas.common import HealthResponse
from app.services.broadcast_service import broadcast_service
from app.services.push_service import push_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check():
    db_status = "connected"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Gateways ──────────────────────────────────────────────────────────
    push_status = push_service.status()
    broadcast_status = broadcast_service.status()
    if "circuit_open" in (push_status, broadcast_status) and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        push=push_status,
        broadcasting=broadcast_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    if overall == "unhealthy":
        return JSONResponse(status_code=503, content=body.model_dump())
    return body
