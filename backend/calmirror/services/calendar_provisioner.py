"""Create or claim the one dedicated external calendar a user mirrors into.

Two requests for the same user can race here (two tabs finishing the OAuth
flow together). The user row's ``gcal_calendar_id`` is only written through
a conditional UPDATE; the loser deletes the calendar it created and adopts
the stored one.

Before creating anything the account's calendar list is searched for a
calendar with the configured name, so reconnecting after a disconnect picks
the old calendar back up instead of adding a second one.
"""

import enum
import logging
from typing import Optional, Tuple

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import User, UserEventSync
from .errors import (
    CalendarApiError,
    CalendarConflict,
    CalendarNotFound,
    CalendarSyncError,
)

logger = logging.getLogger(__name__)


class ProvisionAction(str, enum.Enum):
    CREATED = "CREATED"
    REUSED = "REUSED"
    RECREATED = "RECREATED"


def _claim(db: Session, user_id: int, calendar_id: str, stale_id: Optional[str]) -> bool:
    """Store ``calendar_id`` unless another caller already claimed the slot."""
    slot_free = User.gcal_calendar_id.is_(None)
    if stale_id is not None:
        slot_free = or_(slot_free, User.gcal_calendar_id == stale_id)
    result = db.execute(
        update(User)
        .where(User.id == user_id, slot_free)
        .values(gcal_calendar_id=calendar_id)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _reset_ledger(db: Session, user: User) -> None:
    # A fresh calendar is empty: forget what was pushed to the old one
    db.query(UserEventSync).filter(UserEventSync.user_id == user.id).delete(
        synchronize_session=False
    )
    user.gcal_last_synced_at = None
    db.commit()


def _activate(db: Session, user: User) -> None:
    if not user.gcal_sync_enabled:
        user.enable_sync()
        db.add(user)
        db.commit()


def _stored_calendar_resolves(gateway, user: User) -> bool:
    """Verify the stored calendar. Missing or forbidden counts as gone."""
    try:
        gateway.get_calendar(user.gcal_calendar_id)
    except CalendarNotFound:
        logger.info("Calendar %s for user %s no longer resolves", user.gcal_calendar_id, user.id)
        return False
    except CalendarApiError as exc:
        if exc.status != 403:
            raise
        logger.info("Calendar %s for user %s is no longer accessible", user.gcal_calendar_id, user.id)
        return False
    return True


def _find_named_calendar(gateway, exclude: Optional[str] = None) -> Optional[str]:
    for item in gateway.list_calendars():
        if item.get("summary") != settings.GCAL_CALENDAR_NAME or item.get("id") == exclude:
            continue
        if item.get("accessRole", "owner") != "owner":
            continue
        return item["id"]
    return None


def _find_or_create(gateway, stale_id: Optional[str]) -> Tuple[str, bool]:
    """Return ``(calendar_id, created)`` for the account's dedicated calendar."""
    existing = _find_named_calendar(gateway, exclude=stale_id)
    if existing:
        return existing, False
    try:
        created_id = gateway.create_calendar(
            settings.GCAL_CALENDAR_NAME,
            settings.GCAL_CALENDAR_DESCRIPTION,
            settings.GCAL_DEFAULT_TIMEZONE,
        )
    except CalendarConflict:
        existing = _find_named_calendar(gateway, exclude=stale_id)
        if existing is None:
            raise
        logger.info("Calendar create conflicted, using existing %s", existing)
        return existing, False
    return created_id, True


def ensure_calendar(db: Session, user: User, gateway) -> Tuple[str, ProvisionAction]:
    """Return the user's calendar id, finding, creating and claiming one if needed.

    Also switches sync on (pending, FULL by default) the first time a
    calendar is provisioned so the batch driver picks the user up.
    """
    stored = user.gcal_calendar_id
    stale_id = None
    if stored:
        if _stored_calendar_resolves(gateway, user):
            _activate(db, user)
            return stored, ProvisionAction.REUSED
        stale_id = stored

    calendar_id, created = _find_or_create(gateway, stale_id)

    if not _claim(db, user.id, calendar_id, stale_id):
        db.refresh(user)
        winner = user.gcal_calendar_id
        logger.info(
            "Lost calendar claim for user %s, adopting %s over %s", user.id, winner, calendar_id
        )
        if created and winner != calendar_id:
            try:
                gateway.delete_calendar(calendar_id)
            except CalendarApiError as exc:
                logger.warning("Failed to delete duplicate calendar %s: %s", calendar_id, exc)
        if not winner:
            # Cleared by a concurrent disconnect
            raise CalendarSyncError("Calendar was disconnected while provisioning")
        _activate(db, user)
        return winner, ProvisionAction.REUSED

    db.refresh(user)
    _reset_ledger(db, user)
    if user.gcal_sync_enabled:
        user.mark_pending()
        db.commit()
    else:
        _activate(db, user)
    if not created:
        action = ProvisionAction.REUSED
    elif stale_id:
        action = ProvisionAction.RECREATED
    else:
        action = ProvisionAction.CREATED
    logger.info("Calendar %s %s for user %s", calendar_id, action.value.lower(), user.id)
    return calendar_id, action
