"""
Health check endpoint.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from datetime import datetime, timezone
import logging

from app.database import get_db
from app.models.schemas import HealthCheckResponse
from app.services.generation import GeminiGenerationService, get_generation_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthCheckResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    service: GeminiGenerationService = Depends(get_generation_service),
):
    """
    Health check endpoint to verify system status.

    Returns:
        HealthCheckResponse with database status and whether an AI key is set
    """
    db_status = "ok"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_status = "error"

    ai_configured = service.is_configured
    overall_status = "healthy" if db_status == "ok" and ai_configured else "degraded"

    return HealthCheckResponse(
        status=overall_status,
        database=db_status,
        ai_configured=ai_configured,
        timestamp=datetime.now(timezone.utc),
    )
