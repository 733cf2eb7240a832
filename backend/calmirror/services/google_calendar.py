"""Thin adapter over the Google Calendar v3 API.

Translates ``HttpError`` into the service exceptions so callers never see
googleapiclient types. Everything above this module talks to a gateway
instance obtained from a factory, which tests replace with an in-memory fake.
"""

from typing import Any, Callable, Optional
import logging

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .credentials import build_credentials
from .errors import CalendarApiError, CalendarAuthRejected, CalendarConflict, CalendarNotFound

logger = logging.getLogger(__name__)


def _status_of(exc: HttpError) -> int:
    try:
        return int(getattr(exc.resp, "status", 0) or 0)
    except (TypeError, ValueError):
        return 0


def _translate(exc: HttpError, action: str) -> CalendarApiError:
    status = _status_of(exc)
    message = f"{action}: {exc}"
    if status in (404, 410):
        return CalendarNotFound(message, status)
    if status == 409:
        return CalendarConflict(message, status)
    if status == 401:
        return CalendarAuthRejected(message, status)
    return CalendarApiError(message, status)


class GoogleCalendarGateway:
    """Calendar/event operations against one user's Google account."""

    def __init__(self, service: Any):
        self._service = service

    @classmethod
    def from_tokens(cls, access_token: str, refresh_token: Optional[str] = None) -> "GoogleCalendarGateway":
        creds = build_credentials(access_token, refresh_token)
        return cls(build("calendar", "v3", credentials=creds, cache_discovery=False))

    def _execute(self, request, action: str) -> dict:
        try:
            return request.execute() or {}
        except HttpError as exc:
            raise _translate(exc, action) from exc

    # ── calendars ──────────────────────────────────────────────────────────

    def list_calendars(self) -> list[dict]:
        """Every calendar on the account's calendar list, across pages."""
        items: list[dict] = []
        page_token = None
        while True:
            page = self._execute(
                self._service.calendarList().list(pageToken=page_token), "list calendars"
            )
            items.extend(page.get("items") or [])
            page_token = page.get("nextPageToken")
            if not page_token:
                return items

    def get_calendar(self, calendar_id: str) -> dict:
        return self._execute(self._service.calendars().get(calendarId=calendar_id), "get calendar")

    def create_calendar(self, summary: str, description: str, time_zone: str) -> str:
        body = {"summary": summary, "description": description, "timeZone": time_zone}
        created = self._execute(self._service.calendars().insert(body=body), "create calendar")
        return created["id"]

    def delete_calendar(self, calendar_id: str) -> None:
        self._execute(self._service.calendars().delete(calendarId=calendar_id), "delete calendar")

    # ── events ─────────────────────────────────────────────────────────────

    def find_event_by_ical_uid(
        self, calendar_id: str, ical_uid: str, show_deleted: bool = False
    ) -> Optional[dict]:
        result = self._execute(
            self._service.events().list(
                calendarId=calendar_id,
                iCalUID=ical_uid,
                maxResults=1,
                showDeleted=show_deleted,
            ),
            "list events",
        )
        items = result.get("items") or []
        return items[0] if items else None

    def insert_event(self, calendar_id: str, body: dict) -> str:
        created = self._execute(
            self._service.events().insert(calendarId=calendar_id, body=body), "insert event"
        )
        return created.get("id", "")

    def update_event(self, calendar_id: str, event_id: str, body: dict) -> str:
        updated = self._execute(
            self._service.events().update(calendarId=calendar_id, eventId=event_id, body=body),
            "update event",
        )
        return updated.get("id", event_id)

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        self._execute(
            self._service.events().delete(calendarId=calendar_id, eventId=event_id), "delete event"
        )


PRIMARY_CALENDAR_ID = "primary"

GatewayFactory = Callable[[str, Optional[str]], GoogleCalendarGateway]

google_gateway_factory: GatewayFactory = GoogleCalendarGateway.from_tokens
