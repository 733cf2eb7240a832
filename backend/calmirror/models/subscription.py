import enum
from sqlalchemy import Boolean, Column, Integer, ForeignKey, Text, Enum, Index
from sqlalchemy.orm import relationship

from .base import BaseModel


class SubscriptionKind(str, enum.Enum):
    FULL = "FULL"
    CUSTOM = "CUSTOM"


class Subscription(BaseModel):
    __tablename__ = "subscriptions"
    __table_args__ = (Index("ix_subscriptions_user_kind_active", "user_id", "kind", "active"),)

    id      = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind    = Column(Enum(SubscriptionKind), nullable=False)
    active  = Column(Boolean, nullable=False, default=True)
    # Canonical JSON of the saved filter; only set on CUSTOM filter subscriptions
    filter  = Column(Text, nullable=True)

    user = relationship("User", back_populates="subscriptions")
    follows = relationship("EventFollow", back_populates="subscription")
    exclusions = relationship(
        "FilterExclusion",
        back_populates="subscription",
        cascade="all, delete-orphan",
    )
