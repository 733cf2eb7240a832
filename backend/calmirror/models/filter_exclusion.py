from sqlalchemy import Column, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class FilterExclusion(BaseModel):
    """An event the user removed from a filter subscription.

    Auto-follow skips (user, subscription, event) triples recorded here.
    """

    __tablename__ = "filter_exclusions"
    __table_args__ = (
        UniqueConstraint("user_id", "subscription_id", "event_id", name="uq_filter_exclusions_triple"),
    )

    id              = Column(Integer, primary_key=True, index=True)
    user_id         = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False)
    event_id        = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)

    subscription = relationship("Subscription", back_populates="exclusions")
