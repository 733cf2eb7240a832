"""One bounded pass over users whose mirror is marked pending."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from ..core.config import settings
from ..models import User
from .errors import AuthMissing, CalendarAuthRejected
from .google_calendar import google_gateway_factory
from .sync_orchestrator import run_for_user

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    processed: int = 0
    synced: int = 0
    errors: list[str] = field(default_factory=list)


def pending_users(db: Session, limit: int) -> list[User]:
    # Users never attempted first, then the longest-waiting ones
    return (
        db.query(User)
        .filter(User.gcal_sync_enabled.is_(True), User.gcal_sync_pending.is_(True))
        .order_by(
            User.gcal_last_sync_attempt_at.is_(None).desc(),
            User.gcal_last_sync_attempt_at.asc(),
            User.id.asc(),
        )
        .limit(limit)
        .all()
    )


def _record_failure(
    db: Session,
    result: BatchResult,
    user: User,
    at: datetime,
    exc: Exception,
    fatal: bool = False,
) -> None:
    db.rollback()
    result.errors.append(f"User {user.id}: {exc}")
    if fatal:
        user.mark_error(at, str(exc))
    else:
        user.mark_retry(at, str(exc))
    db.add(user)
    db.commit()


def run_batch(
    db: Session,
    gateway_factory: Callable = google_gateway_factory,
    limit: Optional[int] = None,
    now: Optional[datetime] = None,
) -> BatchResult:
    """Sync up to ``limit`` pending users, isolating failures per user.

    A user without a Google account is switched to ERROR and disabled; any
    other failure, including Google refusing the access token, keeps the user
    pending for the next run and counts as one error for that user.
    """
    limit = settings.GCAL_SYNC_BATCH_SIZE if limit is None else limit
    result = BatchResult()
    users = pending_users(db, limit)
    logger.info("Calendar sync batch starting for %d users", len(users))

    for user in users:
        user_id = user.id
        attempt_at = now or datetime.utcnow()
        try:
            outcome = run_for_user(db, user, gateway_factory, incremental=True, now=now)
        except AuthMissing as exc:
            logger.warning("Disabling calendar sync for user %s: %s", user_id, exc)
            _record_failure(db, result, user, attempt_at, exc, fatal=True)
            continue
        except CalendarAuthRejected as exc:
            logger.warning("Google rejected the access token for user %s: %s", user_id, exc)
            _record_failure(db, result, user, attempt_at, exc)
            continue
        except Exception as exc:
            logger.error("Calendar sync failed for user %s", user_id, exc_info=True)
            _record_failure(db, result, user, attempt_at, exc)
            continue

        result.processed += 1
        result.synced += outcome.created
        result.errors.extend(f"User {user_id}: {err}" for err in outcome.errors)

    logger.info(
        "Calendar sync batch done: %d processed, %d events synced, %d errors",
        result.processed,
        result.synced,
        len(result.errors),
    )
    return result
