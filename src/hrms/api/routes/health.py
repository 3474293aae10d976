"""Health, readiness and liveness endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hrms import __version__
from hrms.api.dependencies import DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: datetime
    database: str


async def database_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database probe failed")
        return False
    return True


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession) -> HealthResponse:
    """Report API version and database reachability. Always answers 200."""
    reachable = await database_reachable(db)
    return HealthResponse(
        status="healthy" if reachable else "degraded",
        version=__version__,
        timestamp=datetime.now(timezone.utc),
        database="healthy" if reachable else "unhealthy",
    )


@router.get("/ready")
async def readiness_check(db: DbSession, response: Response) -> dict[str, str]:
    """Ready only when the database answers; 503 otherwise."""
    if not await database_reachable(db):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unavailable", "database": "unhealthy"}
    return {"status": "ready", "database": "healthy"}


@router.get("/live")
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
