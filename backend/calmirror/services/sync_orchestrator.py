"""Converge one user's external calendar with the events they should see.

The target set comes from the user's mode: every published event for FULL,
published events the user follows for CUSTOM. ``UserEventSync`` records what
was pushed; anything recorded there but no longer targeted is an orphan and
gets deleted externally.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from ..models import Event, EventFollow, EventStatus, SyncMode, User, UserEventSync
from .calendar_provisioner import ensure_calendar
from .credentials import get_valid_access_token, require_linked_account
from .errors import CalendarAuthRejected, CalendarStale, CalendarSyncError, MirrorOperationFailed
from .event_mirror import EventMirror

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    created: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def error_summary(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None


def target_events(db: Session, user: User) -> list[Event]:
    """Published events that belong in the user's mirror under their mode."""
    query = db.query(Event).filter(Event.status == EventStatus.PUBLISHED)
    if user.gcal_sync_mode == SyncMode.CUSTOM:
        query = query.join(EventFollow, EventFollow.event_id == Event.id).filter(
            EventFollow.user_id == user.id
        )
    return query.order_by(Event.id).all()


def _record_sync(db: Session, user_id: int, event_id: int, external_id: str, now: datetime) -> None:
    row = (
        db.query(UserEventSync)
        .filter(UserEventSync.user_id == user_id, UserEventSync.event_id == event_id)
        .first()
    )
    if row is None:
        row = UserEventSync(user_id=user_id, event_id=event_id)
        db.add(row)
    row.external_event_id = external_id
    row.synced_at = now
    db.commit()


def sync_user(
    db: Session,
    user: User,
    gateway,
    incremental: bool = False,
    now: Optional[datetime] = None,
) -> SyncOutcome:
    """Run one pass for ``user`` against their provisioned calendar.

    With ``incremental`` only events updated since the last pass (or never
    pushed) are upserted; orphan detection always covers the full target
    set. Per-event failures are collected in the outcome. ``CalendarStale``
    propagates so the caller can re-provision, and ``CalendarAuthRejected``
    ends the pass without marking the user synced.
    """
    now = now or datetime.utcnow()
    calendar_id = user.gcal_calendar_id
    if not calendar_id:
        raise CalendarStale(f"User {user.id} has no provisioned calendar")

    mirror = EventMirror(gateway)
    outcome = SyncOutcome()
    targets = target_events(db, user)
    target_ids = {e.id for e in targets}
    synced = {
        row.event_id: row
        for row in db.query(UserEventSync).filter(UserEventSync.user_id == user.id).all()
    }

    since = user.gcal_last_synced_at if incremental else None
    for event in targets:
        if since is not None and event.id in synced and event.updated_at < since:
            continue
        try:
            external_id = mirror.upsert(calendar_id, event)
        except (CalendarStale, CalendarAuthRejected):
            raise
        except Exception as exc:
            failure = MirrorOperationFailed(event.id, "upsert", exc)
            logger.warning("Upsert for user %s failed: %s", user.id, failure)
            outcome.errors.append(str(failure))
            continue
        _record_sync(db, user.id, event.id, external_id, now)
        outcome.created += 1

    for event_id, row in synced.items():
        if event_id in target_ids:
            continue
        try:
            mirror.delete(calendar_id, row.external_event_id, event_id)
        except CalendarAuthRejected:
            raise
        except Exception as exc:
            failure = MirrorOperationFailed(event_id, "delete", exc)
            logger.warning("Delete for user %s failed: %s", user.id, failure)
            outcome.errors.append(str(failure))
            continue
        db.delete(row)
        db.commit()
        outcome.deleted += 1

    user.mark_synced(now, outcome.error_summary)
    db.add(user)
    db.commit()
    logger.info(
        "Synced user %s: %d upserted, %d deleted, %d errors",
        user.id,
        outcome.created,
        outcome.deleted,
        len(outcome.errors),
    )
    return outcome


def run_for_user(
    db: Session,
    user: User,
    gateway_factory: Callable,
    incremental: bool = False,
    now: Optional[datetime] = None,
) -> SyncOutcome:
    """Resolve credentials and calendar for ``user``, then run :func:`sync_user`.

    Raises ``AuthMissing`` when the user has no usable Google account. A
    calendar that disappeared is re-provisioned once and synced in full.
    """
    account = require_linked_account(db, user.id)
    token = get_valid_access_token(db, account, now=now)
    gateway = gateway_factory(token, account.refresh_token)

    if not user.gcal_calendar_id:
        ensure_calendar(db, user, gateway)
    try:
        return sync_user(db, user, gateway, incremental=incremental, now=now)
    except CalendarStale:
        logger.info("Calendar for user %s is stale, re-provisioning", user.id)
        ensure_calendar(db, user, gateway)
        if not user.gcal_calendar_id:
            raise CalendarSyncError("Calendar could not be provisioned")
        return sync_user(db, user, gateway, incremental=False, now=now)
