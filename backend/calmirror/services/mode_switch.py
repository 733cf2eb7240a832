"""Inline FULL <-> CUSTOM switch with an immediate full reconciliation."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from ..crud import crud_subscription
from ..models import SyncMode, User
from .sync_orchestrator import SyncOutcome, run_for_user

logger = logging.getLogger(__name__)


@dataclass
class ModeSwitchResult:
    previous_mode: SyncMode
    new_mode: SyncMode
    outcome: SyncOutcome


def switch_mode(
    db: Session,
    user: User,
    mode: SyncMode,
    gateway_factory: Callable,
    now: Optional[datetime] = None,
) -> ModeSwitchResult:
    """Persist the new mode, then run a non-incremental pass for ``user``.

    The mode change is committed before syncing, so it sticks even when the
    sync itself raises (for example ``AuthMissing``); the user then stays
    pending for the batch driver.
    """
    previous = user.gcal_sync_mode or SyncMode.FULL
    user.gcal_sync_mode = mode
    user.mark_pending()
    db.add(user)
    db.commit()
    if mode == SyncMode.FULL:
        crud_subscription.ensure_full_subscription(db, user.id)
    logger.info("User %s switched sync mode %s -> %s", user.id, previous.value, mode.value)

    outcome = run_for_user(db, user, gateway_factory, incremental=False, now=now)
    return ModeSwitchResult(previous_mode=previous, new_mode=mode, outcome=outcome)
