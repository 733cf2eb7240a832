import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from calmirror.core.config import settings
from calmirror.crud import crud_subscription
from calmirror.database import get_db
from calmirror.models import Subscription, User
from calmirror.schemas import (
    FilterStatsRequest,
    FilterSubscriptionCreate,
    SubscriptionDelete,
    SubscriptionResponse,
)
from calmirror.services import filter_matching, follows
from .dependencies import get_current_active_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def _to_response(sub: Subscription) -> SubscriptionResponse:
    flt = filter_matching.parse_filter(sub.filter) if sub.filter else None
    return SubscriptionResponse(
        id=sub.id,
        kind=sub.kind,
        active=bool(sub.active),
        filter=flt,
        filterDescription=filter_matching.describe_filter(flt) if flt else None,
        createdAt=sub.created_at,
    )


def _stats_payload(stats) -> dict:
    return stats.model_dump(by_alias=True)


@router.get("", response_model=list[SubscriptionResponse])
def list_subscriptions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return [_to_response(s) for s in crud_subscription.get_subscriptions(db, current_user.id)]


@router.post("/full/toggle", response_model=SubscriptionResponse)
def toggle_full_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    sub = crud_subscription.toggle_full_subscription(db, current_user.id)
    return _to_response(sub)


@router.post("/custom/filter/stats")
def preview_filter_stats(
    payload: FilterStatsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Show how many published events a filter would follow before saving it."""
    stats = follows.filter_stats(db, payload.filter)
    return {
        **_stats_payload(stats),
        "isLarge": filter_matching.is_large_filter(stats, settings.LARGE_FILTER_THRESHOLD_PERCENT),
        "description": filter_matching.describe_filter(payload.filter),
    }


@router.post("/custom/filter")
def create_filter_subscription(
    payload: FilterSubscriptionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    result = follows.create_filter_subscription(
        db, current_user, payload.filter, confirm_large=payload.confirmLargeFilter
    )
    if result.requires_confirmation:
        return {
            "success": False,
            "requiresConfirmation": True,
            "stats": _stats_payload(result.stats),
            "message": (
                f"This filter matches {result.stats.percentage}% of all events. "
                "Consider subscribing to the full calendar instead."
            ),
            "suggestion": "FULL",
        }
    return {
        "success": True,
        "subscription": _to_response(result.subscription),
        "autoFollowed": result.followed,
        "stats": _stats_payload(result.stats),
    }


@router.get("/{subscription_id}", response_model=SubscriptionResponse)
def get_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    sub = crud_subscription.get_subscription(db, current_user.id, subscription_id)
    if sub is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Subscription not found")
    return _to_response(sub)


@router.delete("/{subscription_id}")
def delete_subscription(
    subscription_id: int,
    payload: Optional[SubscriptionDelete] = Body(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Delete a subscription.

    Filter subscriptions that still own auto-follows need ``keepFollows``;
    without it the response asks the caller to choose.
    """
    keep_follows = payload.keepFollows if payload is not None else None
    result = follows.delete_subscription(db, current_user, subscription_id, keep_follows)
    if result.requires_cleanup_choice:
        return {
            "success": False,
            "requiresCleanupChoice": True,
            "followCount": result.follow_count,
            "message": (
                f"This subscription has {result.follow_count} followed events. "
                "Keep them as manual follows or remove them?"
            ),
        }
    return {
        "success": True,
        "followCount": result.follow_count,
        "keptFollows": bool(keep_follows) if result.follow_count else None,
    }
