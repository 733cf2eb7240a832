from typing import Optional

from sqlalchemy.orm import Session

from ..models import Event, EventFollow, FilterExclusion, FollowSource


def _bump_subscribers(db: Session, event_id: int, delta: int) -> None:
    query = db.query(Event).filter(Event.id == event_id)
    if delta < 0:
        query = query.filter(Event.subscribers > 0)
    query.update({Event.subscribers: Event.subscribers + delta}, synchronize_session=False)


def get_follow(db: Session, user_id: int, event_id: int) -> Optional[EventFollow]:
    return (
        db.query(EventFollow)
        .filter(EventFollow.user_id == user_id, EventFollow.event_id == event_id)
        .first()
    )


def followed_event_ids(db: Session, user_id: int) -> set[int]:
    rows = db.query(EventFollow.event_id).filter(EventFollow.user_id == user_id).all()
    return {r[0] for r in rows}


def follower_ids(db: Session, event_id: int) -> list[int]:
    rows = db.query(EventFollow.user_id).filter(EventFollow.event_id == event_id).all()
    return [r[0] for r in rows]


def create_follow(
    db: Session,
    user_id: int,
    event_id: int,
    source: FollowSource = FollowSource.MANUAL,
    subscription_id: Optional[int] = None,
    commit: bool = True,
) -> EventFollow:
    follow = EventFollow(
        user_id=user_id,
        event_id=event_id,
        source=source,
        subscription_id=subscription_id,
    )
    db.add(follow)
    _bump_subscribers(db, event_id, 1)
    if commit:
        db.commit()
        db.refresh(follow)
    return follow


def delete_follow(db: Session, follow: EventFollow) -> None:
    db.delete(follow)
    _bump_subscribers(db, follow.event_id, -1)
    db.commit()


def _filter_follows(db: Session, subscription_id: int):
    return db.query(EventFollow).filter(
        EventFollow.subscription_id == subscription_id,
        EventFollow.source == FollowSource.FILTER,
    )


def count_filter_follows(db: Session, subscription_id: int) -> int:
    return _filter_follows(db, subscription_id).count()


def convert_filter_follows(db: Session, subscription_id: int) -> int:
    """Detach a subscription's auto-follows so they survive as manual ones."""
    return _filter_follows(db, subscription_id).update(
        {EventFollow.source: FollowSource.MANUAL, EventFollow.subscription_id: None},
        synchronize_session=False,
    )


def delete_filter_follows(db: Session, subscription_id: int) -> list[int]:
    """Delete a subscription's auto-follows. Returns the affected user ids."""
    rows = _filter_follows(db, subscription_id).all()
    user_ids = sorted({f.user_id for f in rows})
    for follow in rows:
        db.delete(follow)
        _bump_subscribers(db, follow.event_id, -1)
    return user_ids


def excluded_event_ids(db: Session, subscription_id: int) -> set[int]:
    rows = (
        db.query(FilterExclusion.event_id)
        .filter(FilterExclusion.subscription_id == subscription_id)
        .all()
    )
    return {r[0] for r in rows}


def is_excluded(db: Session, user_id: int, subscription_id: int, event_id: int) -> bool:
    return (
        db.query(FilterExclusion.id)
        .filter(
            FilterExclusion.user_id == user_id,
            FilterExclusion.subscription_id == subscription_id,
            FilterExclusion.event_id == event_id,
        )
        .first()
        is not None
    )


def add_exclusion(db: Session, user_id: int, subscription_id: int, event_id: int) -> None:
    if is_excluded(db, user_id, subscription_id, event_id):
        return
    db.add(FilterExclusion(user_id=user_id, subscription_id=subscription_id, event_id=event_id))


def delete_exclusions(db: Session, subscription_id: int) -> None:
    db.query(FilterExclusion).filter(FilterExclusion.subscription_id == subscription_id).delete(
        synchronize_session=False
    )
