"""Subscription and follow operations that change what users should see.

``EventFollow`` rows, together with event status and the user's mode, decide
what belongs in a mirror. Nothing here touches ``UserEventSync``; affected
users are only marked pending and the orchestrator converges them.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud import crud_event, crud_event_follow, crud_subscription
from ..crud import user as crud_user
from ..models import Event, EventFollow, FollowSource, Subscription, SubscriptionKind, SyncMode, User
from ..schemas.filters import Filter, FilterStats
from ..utils.errors import error_response
from ..utils.json import dumps
from . import filter_matching

logger = logging.getLogger(__name__)


def mark_users_pending(db: Session, user_ids) -> int:
    return crud_user.mark_pending(db, user_ids)


def _mark_if_custom(db: Session, user: User) -> None:
    if user.gcal_sync_mode == SyncMode.CUSTOM:
        mark_users_pending(db, [user.id])


# ── manual follows ─────────────────────────────────────────────────────────


def follow_event(db: Session, user: User, event_id: int) -> EventFollow:
    event = crud_event.get_event(db, event_id)
    if event is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Event not found")
    if crud_event_follow.get_follow(db, user.id, event_id) is not None:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Already following this event")

    crud_subscription.ensure_custom_subscription(db, user.id)
    follow = crud_event_follow.create_follow(db, user.id, event_id, FollowSource.MANUAL)
    _mark_if_custom(db, user)
    logger.info("User %s followed event %s", user.id, event_id)
    return follow


def unfollow_event(db: Session, user: User, event_id: int) -> None:
    """Remove a follow. Auto-follows leave an exclusion behind so the filter
    does not pick the event up again."""
    follow = crud_event_follow.get_follow(db, user.id, event_id)
    if follow is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Not following this event")

    if follow.source == FollowSource.FILTER and follow.subscription_id is not None:
        crud_event_follow.add_exclusion(db, user.id, follow.subscription_id, event_id)
    crud_event_follow.delete_follow(db, follow)
    _mark_if_custom(db, user)
    logger.info("User %s unfollowed event %s", user.id, event_id)


# ── filter subscriptions ───────────────────────────────────────────────────


@dataclass
class FilterSubscriptionResult:
    stats: FilterStats
    subscription: Optional[Subscription] = None
    followed: int = 0
    requires_confirmation: bool = False


def filter_stats(db: Session, flt: Filter) -> FilterStats:
    return filter_matching.stats(crud_event.get_published_events(db), flt)


def _auto_follow(db: Session, sub: Subscription, events: list[Event]) -> int:
    already = crud_event_follow.followed_event_ids(db, sub.user_id)
    excluded = crud_event_follow.excluded_event_ids(db, sub.id)
    created = 0
    for event in events:
        if event.id in already or event.id in excluded:
            continue
        crud_event_follow.create_follow(
            db, sub.user_id, event.id, FollowSource.FILTER, subscription_id=sub.id, commit=False
        )
        already.add(event.id)
        created += 1
    db.commit()
    return created


def create_filter_subscription(
    db: Session, user: User, flt: Filter, confirm_large: bool = False
) -> FilterSubscriptionResult:
    """Create (or reactivate) a CUSTOM subscription for ``flt``.

    Filters matching a large share of published events are not saved unless
    ``confirm_large`` is set; the caller gets the stats back instead.
    """
    if filter_matching.is_filter_empty(flt):
        raise error_response(
            "Filter must have at least one criterion",
            {"filter": "empty"},
            status.HTTP_400_BAD_REQUEST,
        )

    published = crud_event.get_published_events(db)
    result = FilterSubscriptionResult(stats=filter_matching.stats(published, flt))
    if not confirm_large and filter_matching.is_large_filter(
        result.stats, settings.LARGE_FILTER_THRESHOLD_PERCENT
    ):
        result.requires_confirmation = True
        return result

    filter_json = dumps(flt.to_storage())
    sub = crud_subscription.find_filter_subscription(db, user.id, filter_json)
    if sub is None:
        sub = Subscription(user_id=user.id, kind=SubscriptionKind.CUSTOM, filter=filter_json)
        db.add(sub)
    sub.active = True
    db.commit()
    db.refresh(sub)

    result.subscription = sub
    result.followed = _auto_follow(db, sub, filter_matching.matching_events(published, flt))
    if result.followed:
        _mark_if_custom(db, user)
    logger.info(
        "User %s subscribed to filter %s (%d auto-follows)", user.id, sub.id, result.followed
    )
    return result


@dataclass
class SubscriptionDeleteResult:
    deleted: bool
    follow_count: int = 0
    requires_cleanup_choice: bool = False


def delete_subscription(
    db: Session, user: User, subscription_id: int, keep_follows: Optional[bool] = None
) -> SubscriptionDeleteResult:
    """Delete a subscription, deciding the fate of its auto-follows.

    Without ``keep_follows`` a filter subscription that still owns follows is
    left in place and the follow count is reported back.
    """
    sub = crud_subscription.get_subscription(db, user.id, subscription_id)
    if sub is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Subscription not found")

    follow_count = crud_event_follow.count_filter_follows(db, sub.id)
    if follow_count and keep_follows is None:
        return SubscriptionDeleteResult(
            deleted=False, follow_count=follow_count, requires_cleanup_choice=True
        )

    if follow_count:
        if keep_follows:
            crud_event_follow.convert_filter_follows(db, sub.id)
        else:
            crud_event_follow.delete_filter_follows(db, sub.id)
    crud_event_follow.delete_exclusions(db, sub.id)
    crud_subscription.delete_subscription(db, sub)
    if follow_count and not keep_follows:
        _mark_if_custom(db, user)
    logger.info("User %s deleted subscription %s", user.id, subscription_id)
    return SubscriptionDeleteResult(deleted=True, follow_count=follow_count)


# ── event lifecycle hooks ──────────────────────────────────────────────────


def process_filter_subscriptions_for_event(db: Session, event: Event) -> int:
    """Auto-follow ``event`` for every active filter subscription it matches."""
    if not event.is_published:
        return 0
    created = 0
    affected: set[int] = set()
    for sub in crud_subscription.get_active_filter_subscriptions(db):
        if not filter_matching.matches(event, sub.filter):
            continue
        if crud_event_follow.get_follow(db, sub.user_id, event.id) is not None:
            continue
        if crud_event_follow.is_excluded(db, sub.user_id, sub.id, event.id):
            continue
        crud_event_follow.create_follow(
            db, sub.user_id, event.id, FollowSource.FILTER, subscription_id=sub.id
        )
        affected.add(sub.user_id)
        created += 1
    if affected:
        mark_users_pending(db, affected)
    return created


def on_event_published_or_updated(db: Session, event: Event) -> int:
    """Hook for the event store after an event is published or edited."""
    process_filter_subscriptions_for_event(db, event)
    ids = set(crud_user.full_mode_user_ids(db))
    ids.update(crud_event_follow.follower_ids(db, event.id))
    return mark_users_pending(db, ids)


def on_event_unpublished(db: Session, event: Event) -> int:
    """Hook for the event store after an event leaves PUBLISHED.

    Call before deleting an event row; its follows go with it.
    """
    ids = set(crud_user.full_mode_user_ids(db))
    ids.update(crud_event_follow.follower_ids(db, event.id))
    return mark_users_pending(db, ids)
