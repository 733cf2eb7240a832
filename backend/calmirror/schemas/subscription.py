from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from ..models.event_follow import FollowSource
from ..models.subscription import SubscriptionKind
from .filters import Filter


class FilterSubscriptionCreate(BaseModel):
    filter: Filter
    # Bypass the "this filter matches most events" prompt
    confirmLargeFilter: bool = False


class FilterStatsRequest(BaseModel):
    filter: Filter


class SubscriptionDelete(BaseModel):
    keepFollows: Optional[bool] = None


class SubscriptionResponse(BaseModel):
    id: int
    kind: SubscriptionKind
    active: bool
    filter: Optional[Filter] = None
    filterDescription: Optional[str] = None
    createdAt: Optional[datetime] = None


class FollowRequest(BaseModel):
    eventId: int


class EventFollowResponse(BaseModel):
    id: int
    eventId: int
    subscriptionId: Optional[int] = None
    source: FollowSource
