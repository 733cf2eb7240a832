import enum
from sqlalchemy import Column, Integer, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class FollowSource(str, enum.Enum):
    MANUAL = "MANUAL"
    FILTER = "FILTER"


class EventFollow(BaseModel):
    """An event that belongs in a user's feed and CUSTOM-mode mirror."""

    __tablename__ = "event_follows"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_event_follows_user_event"),)

    id              = Column(Integer, primary_key=True, index=True)
    user_id         = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id        = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)
    source          = Column(Enum(FollowSource), nullable=False, default=FollowSource.MANUAL)

    user = relationship("User", back_populates="event_follows")
    event = relationship("Event", back_populates="follows")
    subscription = relationship("Subscription", back_populates="follows")
