"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app import __version__
from app.config import settings
from app.database import get_db
from src.pattern_reconciler import __version__ as __engine_version__
from src.pattern_reconciler.orm import PatternORM

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    engine_version: str
    environment: str


class HealthDetailResponse(HealthResponse):
    """Readiness response including pattern store status."""

    database: str
    patterns: int | None = None


def _base_fields() -> dict:
    return {
        "version": __version__,
        "engine_version": __engine_version__,
        "environment": settings.app_env,
    }


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic liveness check."""
    return HealthResponse(status="ok", **_base_fields())


@router.get("/health/ready", response_model=HealthDetailResponse)
async def readiness_check(db: AsyncSession = Depends(get_db)) -> HealthDetailResponse:
    """Readiness check: the pattern tables must be reachable."""
    try:
        patterns = await db.scalar(select(func.count()).select_from(PatternORM))
    except (SQLAlchemyError, OSError):
        logger.warning("Pattern store unreachable", exc_info=True)
        return HealthDetailResponse(status="degraded", database="disconnected", **_base_fields())

    return HealthDetailResponse(
        status="ok",
        database="connected",
        patterns=patterns,
        **_base_fields(),
    )
