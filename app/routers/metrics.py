"""
Process metrics endpoint.

GET /metrics  — uptime, memory, database latency, runtime info and the
                LLM circuit-breaker state.
"""
import logging
import platform
import time

import psutil
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, ping_db
from app.dependencies.runtime import get_circuit_breaker
from app.models.database_models import utcnow
from app.models.schemas import MetricsResponse
from app.services.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter()

_STARTED_AT = time.monotonic()


def _format_uptime(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


@router.get("/metrics", response_model=MetricsResponse)
async def metrics(
    db: AsyncSession = Depends(get_db),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
) -> MetricsResponse:
    mem = psutil.Process().memory_info()

    t0 = time.monotonic()
    try:
        await ping_db(db)
        db_status = "connected"
    except Exception as e:
        logger.error(f"Database ping failed: {e}")
        await db.rollback()
        db_status = "disconnected"
    db_ms = round((time.monotonic() - t0) * 1000)

    return MetricsResponse(
        timestamp=utcnow(),
        uptime=_format_uptime(time.monotonic() - _STARTED_AT),
        memory={
            "rss": f"{mem.rss / 1024 / 1024:.1f}MB",
            "vms": f"{mem.vms / 1024 / 1024:.1f}MB",
        },
        database={"status": db_status, "responseTime": f"{db_ms}ms"},
        environment={
            "python": platform.python_version(),
            "platform": platform.platform(),
        },
        circuit_breaker=breaker.snapshot(),
    )
