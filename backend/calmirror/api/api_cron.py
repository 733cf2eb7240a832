import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from calmirror.core.config import settings
from calmirror.database import get_db
from calmirror.schemas import CronRunResponse
from calmirror.services.batch_driver import run_batch
from calmirror.services.google_calendar import GatewayFactory
from .dependencies import get_gateway_factory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


@router.get("/sync/cron", response_model=CronRunResponse)
def run_calendar_sync_cron(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    """Process one batch of users whose calendar mirror is pending.

    Called by an external scheduler with ``Authorization: Bearer <CRON_SECRET>``.
    Partial failures are reported in ``errors`` with a 200.
    """
    secret = settings.CRON_SECRET
    if not secret:
        logger.error("CRON_SECRET not configured")
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Cron secret not configured")
    if not hmac.compare_digest(authorization or "", f"Bearer {secret}"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Unauthorized")

    result = run_batch(db, gateway_factory)
    return CronRunResponse(processed=result.processed, synced=result.synced, errors=result.errors)
