from unittest.mock import Mock

import pytest
from googleapiclient.errors import HttpError

from calmirror.services import google_calendar
from calmirror.services.errors import CalendarApiError, CalendarConflict, CalendarNotFound
from calmirror.services.google_calendar import GoogleCalendarGateway


def _request(result=None, status=None):
    if status is not None:
        def execute():
            raise HttpError(resp=Mock(status=status), content=b"")
    else:
        def execute():
            return result
    return Mock(execute=execute)


def test_from_tokens_builds_calendar_service(monkeypatch):
    built = {}

    def fake_build(name, version, credentials=None, cache_discovery=True):
        built.update(name=name, version=version, credentials=credentials, cache=cache_discovery)
        return Mock()

    monkeypatch.setattr(google_calendar, "build", fake_build)
    monkeypatch.setattr(google_calendar, "build_credentials", lambda a, r: ("creds", a, r))

    gateway = GoogleCalendarGateway.from_tokens("at", "rt")

    assert isinstance(gateway, GoogleCalendarGateway)
    assert built == {
        "name": "calendar",
        "version": "v3",
        "credentials": ("creds", "at", "rt"),
        "cache": False,
    }


def test_create_calendar_returns_id():
    insert = Mock(return_value=_request({"id": "cal-123"}))
    service = Mock(calendars=lambda: Mock(insert=insert))

    cal_id = GoogleCalendarGateway(service).create_calendar("Events", "desc", "UTC")

    assert cal_id == "cal-123"
    insert.assert_called_once_with(body={"summary": "Events", "description": "desc", "timeZone": "UTC"})


def test_find_event_by_ical_uid():
    calls = []

    def list_(**kwargs):
        calls.append(kwargs)
        return _request({"items": [{"id": "gev-1"}]} if kwargs["iCalUID"] == "known" else {})

    gateway = GoogleCalendarGateway(Mock(events=lambda: Mock(list=list_)))

    assert gateway.find_event_by_ical_uid("cal", "known")["id"] == "gev-1"
    assert gateway.find_event_by_ical_uid("cal", "missing", show_deleted=True) is None
    assert calls[1]["showDeleted"] is True
    assert calls[1]["maxResults"] == 1


@pytest.mark.parametrize(
    "status, expected",
    [(404, CalendarNotFound), (410, CalendarNotFound), (409, CalendarConflict), (500, CalendarApiError)],
)
def test_http_errors_are_translated(status, expected):
    service = Mock(events=lambda: Mock(insert=lambda **k: _request(status=status)))

    with pytest.raises(expected) as exc:
        GoogleCalendarGateway(service).insert_event("cal", {"iCalUID": "x"})

    assert exc.value.status == status
    assert isinstance(exc.value.__cause__, HttpError)


def test_missing_calendar_is_not_found():
    service = Mock(calendars=lambda: Mock(get=lambda **k: _request(status=404)))
    with pytest.raises(CalendarNotFound):
        GoogleCalendarGateway(service).get_calendar("gone")


def test_update_falls_back_to_given_id():
    service = Mock(events=lambda: Mock(update=lambda **k: _request({})))
    assert GoogleCalendarGateway(service).update_event("cal", "gev-9", {}) == "gev-9"
