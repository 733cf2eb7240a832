from .filters import Filter, DateRange, FilterStats
from .calendar import (
    SyncModeUpdate,
    SyncState,
    CalendarStatusResponse,
    EnsureCalendarResponse,
    SyncRunResponse,
    ModeSwitchResponse,
    CronRunResponse,
    CleanupPrimaryResponse,
)
from .subscription import (
    FilterSubscriptionCreate,
    FilterStatsRequest,
    SubscriptionDelete,
    SubscriptionResponse,
    FollowRequest,
    EventFollowResponse,
)
