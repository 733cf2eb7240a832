import enum
from sqlalchemy import Column, Integer, String, DateTime, Text, Enum
from sqlalchemy.orm import relationship

from .base import BaseModel


class EventStatus(str, enum.Enum):
    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"


class Event(BaseModel):
    """Internal calendar event. Owned by the event store; read-only here."""

    __tablename__ = "events"

    id          = Column(Integer, primary_key=True, index=True)
    title       = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    url         = Column(String, nullable=True)
    location    = Column(String, nullable=True)
    start       = Column(DateTime, nullable=False)
    end         = Column(DateTime, nullable=False)
    # NULL timezone means an all-day event spanning start..end calendar days
    timezone    = Column(String, nullable=True)
    source      = Column(String, nullable=True)
    # JSON array of tag names
    tags        = Column(Text, nullable=True)
    country     = Column(String, nullable=True)
    region      = Column(String, nullable=True)
    city        = Column(String, nullable=True)
    status      = Column(Enum(EventStatus), nullable=False, default=EventStatus.PUBLISHED, index=True)
    subscribers = Column(Integer, nullable=False, default=0)

    follows = relationship("EventFollow", back_populates="event", cascade="all, delete-orphan")

    @property
    def is_published(self) -> bool:
        return self.status == EventStatus.PUBLISHED
