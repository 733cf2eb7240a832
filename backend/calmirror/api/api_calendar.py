from datetime import datetime
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from calmirror.crud import crud_event
from calmirror.database import get_db
from calmirror.models import SyncMode, User, UserEventSync
from calmirror.schemas import (
    CalendarStatusResponse,
    CleanupPrimaryResponse,
    EnsureCalendarResponse,
    ModeSwitchResponse,
    SyncModeUpdate,
    SyncRunResponse,
    SyncState,
)
from calmirror.services.calendar_provisioner import ProvisionAction, ensure_calendar
from calmirror.services.credentials import (
    get_linked_account,
    get_valid_access_token,
    revoke_tokens,
)
from calmirror.services.errors import AuthMissing, CalendarSyncError
from calmirror.services.event_mirror import EventMirror
from calmirror.services.google_calendar import PRIMARY_CALENDAR_ID, GatewayFactory
from calmirror.services.mode_switch import switch_mode
from calmirror.services.sync_orchestrator import run_for_user
from .dependencies import get_current_active_user, get_gateway_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calendar", tags=["calendar"])

_ENSURE_MESSAGES = {
    ProvisionAction.CREATED: "Calendar created",
    ProvisionAction.REUSED: "Calendar already connected",
    ProvisionAction.RECREATED: "Calendar was missing and has been recreated",
}


def _record_failure(db: Session, user: User, exc: Exception) -> None:
    """Persist a failed on-demand run the same way the batch driver does."""
    db.rollback()
    now = datetime.utcnow()
    if isinstance(exc, AuthMissing):
        user.mark_error(now, str(exc))
    else:
        user.mark_retry(now, str(exc))
    db.add(user)
    db.commit()


def _sync_state(user: User) -> SyncState:
    return SyncState(
        enabled=bool(user.gcal_sync_enabled),
        pending=bool(user.gcal_sync_pending),
        status=user.gcal_sync_status,
        mode=user.gcal_sync_mode or SyncMode.FULL,
        calendarId=user.gcal_calendar_id,
        lastSyncedAt=user.gcal_last_synced_at,
        lastSyncError=user.gcal_last_sync_error,
        lastSyncAttemptAt=user.gcal_last_sync_attempt_at,
    )


@router.post("/ensure", response_model=EnsureCalendarResponse)
def ensure_user_calendar(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    """Provision the dedicated calendar and switch sync on."""
    account = get_linked_account(db, current_user.id)
    if account is None or not account.access_token:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Google account not connected")
    token = get_valid_access_token(db, account)
    gateway = gateway_factory(token, account.refresh_token)
    try:
        calendar_id, action = ensure_calendar(db, current_user, gateway)
    except CalendarSyncError as exc:
        logger.error("Failed to ensure calendar for user %s: %s", current_user.id, exc)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Failed to ensure calendar: {exc}")
    return EnsureCalendarResponse(
        calendarId=calendar_id,
        action=action.value,
        message=_ENSURE_MESSAGES[action],
    )


@router.post("/disconnect")
def disconnect_calendar(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Stop mirroring. The linked account row is kept for sign-in."""
    account = get_linked_account(db, current_user.id)
    if account is not None:
        revoke_tokens(account)
    current_user.disable_sync()
    db.query(UserEventSync).filter(UserEventSync.user_id == current_user.id).delete(
        synchronize_session=False
    )
    db.add(current_user)
    db.commit()
    logger.info("User %s disconnected Google Calendar", current_user.id)
    return {"success": True, "message": "Google Calendar disconnected"}


@router.post("/cleanup-primary", response_model=CleanupPrimaryResponse)
def cleanup_primary_calendar(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    """Delete mirrored events that older releases wrote into the primary calendar."""
    account = get_linked_account(db, current_user.id)
    if account is None or not account.access_token:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Google Calendar not connected")
    token = get_valid_access_token(db, account)
    gateway = gateway_factory(token, account.refresh_token)
    try:
        outcome = EventMirror(gateway).purge(PRIMARY_CALENDAR_ID, crud_event.get_published_events(db))
    except CalendarSyncError as exc:
        logger.error("Primary calendar cleanup failed for user %s: %s", current_user.id, exc)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Cleanup failed: {exc}")
    logger.info(
        "Removed %d of %d mirrored events from primary calendar of user %s",
        outcome.deleted,
        outcome.found,
        current_user.id,
    )
    return CleanupPrimaryResponse(
        success=not outcome.errors,
        message=f"Found {outcome.found} event(s) in primary calendar, deleted {outcome.deleted}",
        found=outcome.found,
        deleted=outcome.deleted,
        errors=outcome.errors,
    )


@router.post("/sync", response_model=SyncRunResponse)
def sync_now(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    """Run a full pass for the current user and return its errors inline."""
    if not current_user.gcal_sync_enabled:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Google Calendar sync is not enabled")
    try:
        outcome = run_for_user(db, current_user, gateway_factory, incremental=False)
    except AuthMissing as exc:
        _record_failure(db, current_user, exc)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc))
    except CalendarSyncError as exc:
        _record_failure(db, current_user, exc)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Sync failed: {exc}")
    return SyncRunResponse(
        created=outcome.created,
        deleted=outcome.deleted,
        errors=outcome.errors,
    )


@router.get("/mode")
def get_sync_mode(current_user: User = Depends(get_current_active_user)):
    return {"mode": current_user.gcal_sync_mode or SyncMode.FULL}


@router.patch("/mode", response_model=ModeSwitchResponse)
def update_sync_mode(
    payload: SyncModeUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    gateway_factory: GatewayFactory = Depends(get_gateway_factory),
):
    """Switch FULL/CUSTOM and reconcile the calendar right away."""
    if not current_user.gcal_sync_enabled or not current_user.gcal_calendar_id:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Google Calendar not connected")

    previous = current_user.gcal_sync_mode or SyncMode.FULL
    try:
        result = switch_mode(db, current_user, payload.mode, gateway_factory)
    except AuthMissing:
        return ModeSwitchResponse(
            created=0,
            deleted=0,
            errors=[],
            previousMode=previous,
            newMode=payload.mode,
            message=f"Sync mode updated to {payload.mode.value}. Please reconnect Google Calendar to sync.",
        )
    except CalendarSyncError as exc:
        _record_failure(db, current_user, exc)
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, f"Sync failed: {exc}")

    outcome = result.outcome
    return ModeSwitchResponse(
        success=not outcome.errors,
        created=outcome.created,
        deleted=outcome.deleted,
        errors=outcome.errors,
        previousMode=result.previous_mode,
        newMode=result.new_mode,
        message=(
            f"Sync mode changed to {result.new_mode.value}: "
            f"{outcome.created} synced, {outcome.deleted} removed"
        ),
    )


@router.get("/status", response_model=CalendarStatusResponse)
def calendar_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    account = get_linked_account(db, current_user.id)
    return CalendarStatusResponse(
        connected=account is not None and bool(account.access_token),
        sync=_sync_state(current_user),
    )
