"""Exceptions raised by the calendar mirror services."""


class CalendarSyncError(Exception):
    """Base exception for calendar sync errors."""

    pass


class AuthMissing(CalendarSyncError):
    """The user has no linked account or no access token. Fatal for that user."""

    pass


class TokenRefreshFailed(CalendarSyncError):
    """Refreshing an access token failed. Callers fall back to the old token."""

    pass


class CalendarApiError(CalendarSyncError):
    """The external calendar service rejected a call."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class CalendarNotFound(CalendarApiError):
    """404/410 from the provider."""

    pass


class CalendarConflict(CalendarApiError):
    """409 from the provider (identifier already exists)."""

    pass


class CalendarAuthRejected(CalendarApiError):
    """401 from the provider: the access token was refused. Fatal for the pass."""

    pass


class CalendarStale(CalendarSyncError):
    """A stored calendar id no longer resolves and must be re-provisioned."""

    pass



class MirrorOperationFailed(CalendarSyncError):
    """A single upsert/delete failed. Aggregated, never fatal to a pass."""

    def __init__(self, event_id: int, operation: str, cause: Exception):
        super().__init__(f"Event {event_id}: {cause}")
        self.event_id = event_id
        self.operation = operation
        self.cause = cause
