from .user import User, SyncMode, SyncStatus
from .linked_account import LinkedAccount, AccountProvider
from .event import Event, EventStatus
from .subscription import Subscription, SubscriptionKind
from .event_follow import EventFollow, FollowSource
from .filter_exclusion import FilterExclusion
from .user_event_sync import UserEventSync

__all__ = [
    "User",
    "SyncMode",
    "SyncStatus",
    "LinkedAccount",
    "AccountProvider",
    "Event",
    "EventStatus",
    "Subscription",
    "SubscriptionKind",
    "EventFollow",
    "FollowSource",
    "FilterExclusion",
    "UserEventSync",
]
