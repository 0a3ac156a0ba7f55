"""Internal API endpoints - protected by shared secret, not user auth.

These endpoints are called by cron jobs / external schedulers, not by
human users. They bypass Supabase JWT auth and instead validate a
shared secret via the X-Cron-Secret header.
"""

import logging
from dataclasses import asdict
from typing import Any

from fastapi import APIRouter, Header, HTTPException, status

from app.config.settings import settings
from app.services.role_sync.synchronizer import role_synchronizer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", tags=["internal"])


def _verify_cron_secret(x_cron_secret: str = Header(...)) -> None:
    """Validate the X-Cron-Secret header against the configured secret."""
    if not settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron secret not configured",
        )
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid cron secret",
        )


@router.post("/role-sync/drain")
async def trigger_role_sync_drain(
    x_cron_secret: str = Header(...),
) -> dict[str, Any]:
    """
    Run one role-sync drain cycle.

    Protected by X-Cron-Secret header. For deployments that run with the
    in-process scheduler disabled. Returns skipped=true if a drain is already
    running in this process.
    """
    _verify_cron_secret(x_cron_secret)

    report = await role_synchronizer.process_queue()
    logger.info(f"[role-sync] Drain triggered via internal endpoint: {asdict(report)}")
    return asdict(report)
