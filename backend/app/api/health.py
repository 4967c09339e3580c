############################################################
#
# bloghut - Community Blogging Platform
#
# health.py: Health check endpoints
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_async_db
from backend.app.logging_config import get_logger
from backend.app.settings import get_settings
from backend.app.storage.uploads import get_image_storage

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def liveness_probe() -> Dict[str, str]:
    """
    Liveness probe - checks if the application is running.

    Returns 200 if the application is alive.
    """
    return {"status": "alive", "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/readyz")
async def readiness_probe(db: AsyncSession = Depends(get_async_db)) -> Any:
    """
    Readiness probe - checks the database answers and uploads are writable.

    Returns 503 when any check fails.
    """
    checks = {"database": False, "uploads": False}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.warning("readiness_database_failed", error=str(e))

    upload_root = get_image_storage().base_path
    checks["uploads"] = upload_root.is_dir()

    all_ready = all(checks.values())
    body: Dict[str, Any] = {
        "status": "ready" if all_ready else "not_ready",
        "version": get_settings().app_version,
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(body, status_code=200 if all_ready else 503)
