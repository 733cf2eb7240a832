from typing import Optional

from sqlalchemy.orm import Session

from ..models import Event, EventStatus


def get_event(db: Session, event_id: int) -> Optional[Event]:
    return db.query(Event).filter(Event.id == event_id).first()


def get_published_events(db: Session) -> list[Event]:
    return db.query(Event).filter(Event.status == EventStatus.PUBLISHED).order_by(Event.id).all()
