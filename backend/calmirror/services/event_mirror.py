"""Push single internal events into an external calendar.

Every mirrored event carries an iCalUID derived from the internal event id
only, so repeating an upsert updates the same external entry instead of
creating a duplicate.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional
import logging

from ..core.config import settings
from .errors import (
    CalendarApiError,
    CalendarAuthRejected,
    CalendarConflict,
    CalendarNotFound,
    CalendarStale,
    MirrorOperationFailed,
)

logger = logging.getLogger(__name__)


def generate_event_ical_uid(event_id: int) -> str:
    return f"event-{event_id}@{settings.GCAL_ICAL_UID_DOMAIN}"


def _utc_iso(value: datetime) -> str:
    return value.replace(microsecond=0).isoformat() + "Z"


def convert_event(event: Any) -> dict:
    """Map an :class:`~calmirror.models.Event` to a Calendar API event body.

    Events without a timezone are all-day entries covering the inclusive
    start..end calendar days; the API wants an exclusive end date, hence the
    extra day. Events with a timezone become timed entries in that zone.
    """
    body: dict = {
        "summary": event.title,
        "iCalUID": generate_event_ical_uid(event.id),
    }
    if event.description:
        body["description"] = event.description
    if event.location:
        body["location"] = event.location
    if event.url:
        body["source"] = {"title": settings.GCAL_SOURCE_TITLE, "url": event.url}

    if event.timezone:
        body["start"] = {"dateTime": _utc_iso(event.start), "timeZone": event.timezone}
        body["end"] = {"dateTime": _utc_iso(event.end), "timeZone": event.timezone}
    else:
        exclusive_end = event.end.date() + timedelta(days=1)
        body["start"] = {"date": event.start.date().isoformat()}
        body["end"] = {"date": exclusive_end.isoformat()}
    return body


@dataclass
class PurgeOutcome:
    found: int = 0
    deleted: int = 0
    errors: list[str] = field(default_factory=list)


class EventMirror:
    """Idempotent upsert/delete of internal events in one external calendar."""

    def __init__(self, gateway):
        self.gateway = gateway

    def upsert(self, calendar_id: str, event: Any) -> str:
        """Create or update ``event`` in ``calendar_id`` and return its external id."""
        body = convert_event(event)
        ical_uid = body["iCalUID"]
        try:
            existing = self.gateway.find_event_by_ical_uid(calendar_id, ical_uid)
        except CalendarNotFound as exc:
            # Listing only 404s when the calendar itself is gone
            raise CalendarStale(f"Calendar {calendar_id} no longer exists") from exc
        if existing is not None:
            return self._replace(calendar_id, existing["id"], body)
        try:
            return self.gateway.insert_event(calendar_id, body)
        except CalendarConflict:
            # Google keeps cancelled copies around under the same iCalUID
            logger.info("Insert conflict for %s in %s, retrying as update", ical_uid, calendar_id)
            existing = self.gateway.find_event_by_ical_uid(calendar_id, ical_uid, show_deleted=True)
            if existing is None:
                raise
            return self._replace(calendar_id, existing["id"], body)

    def _replace(self, calendar_id: str, external_id: str, body: dict) -> str:
        try:
            return self.gateway.update_event(calendar_id, external_id, body)
        except (CalendarNotFound, CalendarAuthRejected):
            raise
        except CalendarApiError as exc:
            # Switching between all-day and timed is rejected as an update
            logger.info(
                "Update of %s rejected (%s), deleting and re-inserting", external_id, exc.status
            )
            self.gateway.delete_event(calendar_id, external_id)
            return self.gateway.insert_event(calendar_id, body)

    def delete(
        self,
        calendar_id: str,
        external_event_id: Optional[str],
        event_id: Optional[int] = None,
    ) -> bool:
        """Remove an external event. Returns False when it was already gone."""
        if not external_event_id and event_id is not None:
            found = self.gateway.find_event_by_ical_uid(calendar_id, generate_event_ical_uid(event_id))
            external_event_id = found["id"] if found else None
        if not external_event_id:
            return False
        try:
            self.gateway.delete_event(calendar_id, external_event_id)
        except CalendarNotFound:
            logger.debug("External event %s already deleted", external_event_id)
            return False
        return True

    def purge(self, calendar_id: str, events: Iterable[Any]) -> PurgeOutcome:
        """Remove copies of ``events`` from a calendar we no longer mirror into.

        Earlier releases wrote straight into the user's primary calendar;
        those entries are found by iCalUID and deleted one by one.
        """
        outcome = PurgeOutcome()
        for event in events:
            try:
                found = self.gateway.find_event_by_ical_uid(
                    calendar_id, generate_event_ical_uid(event.id)
                )
                if found is None:
                    continue
                outcome.found += 1
                if self.delete(calendar_id, found["id"]):
                    outcome.deleted += 1
            except CalendarAuthRejected:
                raise
            except CalendarApiError as exc:
                outcome.errors.append(str(MirrorOperationFailed(event.id, "delete", exc)))
        return outcome
