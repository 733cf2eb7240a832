from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import Iterable, Optional

from .. import models


class CRUDUser:
    def get_user_by_email(self, db: Session, email: str) -> Optional[models.User]:
        return db.query(models.User).filter(func.lower(models.User.email) == email.strip().lower()).first()

    def mark_pending(self, db: Session, user_ids: Iterable[int]) -> int:
        """Flag sync-enabled users for the next batch run. Returns how many changed."""
        ids = set(user_ids)
        if not ids:
            return 0
        users = (
            db.query(models.User)
            .filter(models.User.id.in_(ids), models.User.gcal_sync_enabled.is_(True))
            .all()
        )
        changed = sum(1 for u in users if u.mark_pending())
        db.commit()
        return changed

    def full_mode_user_ids(self, db: Session) -> list[int]:
        rows = (
            db.query(models.User.id)
            .filter(
                models.User.gcal_sync_enabled.is_(True),
                models.User.gcal_sync_mode == models.SyncMode.FULL,
            )
            .all()
        )
        return [r[0] for r in rows]


user = CRUDUser()
