"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hr_payroll.api.dependencies import DbSession
from hr_payroll.crypto import DecryptionError, decrypt_value
from hr_payroll.services.permission_service import PermissionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Raw read so the stored token skips the EncryptedDecimal column type
LATEST_PAYROLL_TOKEN = text(
    "SELECT gross_salary FROM payrolls ORDER BY created_at DESC LIMIT 1"
)


class HealthResponse(BaseModel):
    """Health check response.

    ``encryption`` says whether stored payroll amounts still decrypt with the
    configured ``APP_KEY``. ``missing_permissions`` counts catalogue entries
    that ``seed-permissions`` has not written yet.
    """

    status: str
    timestamp: datetime
    database: str
    encryption: str = "unknown"
    missing_permissions: int | None = None


async def _encryption_status(db: DbSession) -> str:
    token = await db.scalar(LATEST_PAYROLL_TOKEN)
    if token is None:
        return "unused"
    try:
        decrypt_value(token)
    except DecryptionError:
        logger.error("Stored payroll amounts do not decrypt with the configured APP_KEY")
        return "key_mismatch"
    return "healthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check the database, the payroll encryption key and the permission seed."""
    db_status = "unhealthy"
    encryption = "unknown"
    missing = None
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
        encryption = await _encryption_status(db)
        missing = len(await PermissionService(db).missing_permissions())
    except SQLAlchemyError:
        logger.exception("Database health check failed")

    healthy = db_status == "healthy" and encryption != "key_mismatch" and missing == 0
    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        encryption=encryption,
        missing_permissions=missing,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check() -> dict[str, str]:
    """Readiness check for container orchestration."""
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
