"""Health check router endpoints."""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_gpg_engine
from gpgkeys import GPGError

router = APIRouter(prefix="/health", tags=["health"])

logger = structlog.get_logger(__name__)


async def check_gpg_ready() -> bool:
    """Return True when the gpg binary runs against the configured home directory."""
    try:
        await get_gpg_engine().version()
    except (GPGError, OSError) as exc:
        logger.warning("gpg_not_ready", error=str(exc))
        return False
    return True


@router.get("/live")
async def live() -> dict[str, str]:
    """Liveness probe endpoint."""
    return {"status": "live"}


@router.get("/ready")
async def ready(gpg_ready: Annotated[bool, Depends(check_gpg_ready)]) -> dict[str, str]:
    """Readiness probe requiring a working gpg engine."""
    if not gpg_ready:
        raise HTTPException(
            status_code=503,
            detail={"detail": "Service not ready.", "code": "engine_failure"},
        )
    return {"status": "ready"}
