"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession
import logging
import time

from app.config import Settings, get_settings
from app.database import get_db, ping_db
from app.models.database_models import utcnow
from app.models.schemas import HealthCheckResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse, response_model_exclude_none=True)
async def health_check(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Report database reachability and configuration.

    Returns 200 with status "healthy" when the database answers, otherwise
    503 with status "unhealthy" and the error message.
    """
    t0 = time.monotonic()

    db_status = "connected"
    error = None
    try:
        await ping_db(db)
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        await db.rollback()
        db_status = "disconnected"
        error = str(e)

    elapsed_ms = round((time.monotonic() - t0) * 1000)
    body = HealthCheckResponse(
        status="healthy" if error is None else "unhealthy",
        timestamp=utcnow(),
        response_time=f"{elapsed_ms}ms",
        services={
            "database": db_status,
            "openai": "configured" if settings.has_openai_key else "missing",
            "database_url": "configured" if settings.has_database_url else "missing",
        },
        environment={
            "model": settings.OPENAI_MODEL,
            "mock": settings.MOCK_AI_RESPONSES,
            "counselingStore": settings.COUNSELING_STORE,
        },
        error=error,
    )

    if error is not None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
    return body
