from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint

from .base import BaseModel


class UserEventSync(BaseModel):
    """Ledger of what was actually pushed to a user's external calendar.

    Rows are written only by the sync orchestrator. ``event_id`` is not a
    foreign key: a row must survive deletion of its event so the orphan
    pass can still remove the external copy.
    """

    __tablename__ = "user_event_syncs"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_user_event_syncs_user_event"),)

    id                = Column(Integer, primary_key=True, index=True)
    user_id           = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id          = Column(Integer, nullable=False)
    external_event_id = Column(String, nullable=False)
    synced_at         = Column(DateTime, nullable=False, default=datetime.utcnow)
