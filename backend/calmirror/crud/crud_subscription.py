from typing import Optional

from sqlalchemy.orm import Session

from ..models import Subscription, SubscriptionKind


def get_subscriptions(db: Session, user_id: int) -> list[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )


def get_subscription(db: Session, user_id: int, subscription_id: int) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
        .first()
    )


def get_full_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.kind == SubscriptionKind.FULL)
        .order_by(Subscription.id)
        .first()
    )


def ensure_full_subscription(db: Session, user_id: int) -> Subscription:
    """Find-or-create the user's single FULL subscription and make it active."""
    sub = get_full_subscription(db, user_id)
    if sub is None:
        sub = Subscription(user_id=user_id, kind=SubscriptionKind.FULL, active=True)
        db.add(sub)
    elif not sub.active:
        sub.active = True
    db.commit()
    db.refresh(sub)
    return sub


def toggle_full_subscription(db: Session, user_id: int) -> Subscription:
    sub = get_full_subscription(db, user_id)
    if sub is None:
        sub = Subscription(user_id=user_id, kind=SubscriptionKind.FULL, active=True)
        db.add(sub)
    else:
        sub.active = not sub.active
    db.commit()
    db.refresh(sub)
    return sub


def ensure_custom_subscription(db: Session, user_id: int) -> Subscription:
    """The filterless CUSTOM subscription that backs manual follows."""
    sub = (
        db.query(Subscription)
        .filter(
            Subscription.user_id == user_id,
            Subscription.kind == SubscriptionKind.CUSTOM,
            Subscription.filter.is_(None),
        )
        .first()
    )
    if sub is None:
        sub = Subscription(user_id=user_id, kind=SubscriptionKind.CUSTOM, active=True)
        db.add(sub)
    elif not sub.active:
        sub.active = True
    db.commit()
    db.refresh(sub)
    return sub


def find_filter_subscription(db: Session, user_id: int, filter_json: str) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(
            Subscription.user_id == user_id,
            Subscription.kind == SubscriptionKind.CUSTOM,
            Subscription.filter == filter_json,
        )
        .first()
    )


def get_active_filter_subscriptions(db: Session) -> list[Subscription]:
    return (
        db.query(Subscription)
        .filter(
            Subscription.kind == SubscriptionKind.CUSTOM,
            Subscription.active.is_(True),
            Subscription.filter.isnot(None),
        )
        .all()
    )


def delete_subscription(db: Session, sub: Subscription) -> None:
    db.delete(sub)
    db.commit()
