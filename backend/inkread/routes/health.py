"""
InkRead Backend — Health Check Route
======================================

What:  GET /health for container and load balancer probes.
How:   Runs SELECT 1 against the database and asks the configured OCR
       engine whether it is usable.

Status levels:
    healthy:   database and OCR engine available       (HTTP 200)
    degraded:  database up, OCR engine unavailable     (HTTP 200)
    unhealthy: database unreachable                    (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from inkread import __version__
from inkread.database import engine
from inkread.schemas.common import HealthResponse
from inkread.services.ocr_base import OCREngine
from inkread.services.ocr_dispatch import get_ocr_engine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(ocr_engine: OCREngine = Depends(get_ocr_engine)):
    db_status = "connected"
    ocr_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    try:
        available = await ocr_engine.health_check()
    except Exception as e:
        available = False
        logger.warning("Health check: %s engine error: %s", ocr_engine.name, str(e))
    if not available:
        ocr_status = "unavailable"
        if overall == "healthy":
            overall = "degraded"

    response = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        ocr_engine=ocr_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content=response.model_dump(by_alias=True),
    )
