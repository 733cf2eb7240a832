from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from calmirror.database import get_db
from calmirror.models import User
from calmirror.schemas import EventFollowResponse, FollowRequest
from calmirror.services import follows
from .dependencies import get_current_active_user

router = APIRouter(tags=["follows"])


@router.post("/follow", status_code=status.HTTP_201_CREATED)
def follow_event(
    payload: FollowRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    follow = follows.follow_event(db, current_user, payload.eventId)
    return {
        "success": True,
        "follow": EventFollowResponse(
            id=follow.id,
            eventId=follow.event_id,
            subscriptionId=follow.subscription_id,
            source=follow.source,
        ),
    }


@router.post("/unfollow")
def unfollow_event(
    payload: FollowRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    follows.unfollow_event(db, current_user, payload.eventId)
    return {"success": True}
