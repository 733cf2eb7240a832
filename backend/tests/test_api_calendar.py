from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from calmirror.api import api_calendar
from calmirror.api.dependencies import get_gateway_factory
from calmirror.core.config import settings
from calmirror.database import get_db
from calmirror.main import app
from calmirror.models import LinkedAccount, SyncMode, SyncStatus, UserEventSync
from calmirror.services.event_mirror import generate_event_ical_uid

from backend.tests.factories import link_google, make_event, make_user, setup_db


@pytest.fixture(autouse=True)
def clear_overrides():
    yield
    app.dependency_overrides.clear()


def setup_app(gateway=None):
    db = setup_db()

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    if gateway is not None:
        app.dependency_overrides[get_gateway_factory] = lambda: gateway
    return db


def auth_headers(user):
    token = jwt.encode({"sub": user.email}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def test_requires_bearer_token():
    setup_app()
    client = TestClient(app)
    assert client.get("/calendar/status").status_code == 401
    resp = client.get("/calendar/status", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_status_without_account():
    db = setup_app()
    user = make_user(db)
    resp = TestClient(app).get("/calendar/status", headers=auth_headers(user))
    assert resp.status_code == 200
    data = resp.json()
    assert data["connected"] is False
    assert data["sync"]["enabled"] is False
    assert data["sync"]["status"] == "DISABLED"
    assert data["sync"]["mode"] == "FULL"
    assert data["sync"]["calendarId"] is None


def test_ensure_provisions_then_reuses(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db)
    link_google(db, user)
    client = TestClient(app)

    resp = client.post("/calendar/ensure", headers=auth_headers(user))
    assert resp.status_code == 200
    first = resp.json()
    assert first["action"] == "CREATED"
    assert first["calendarId"] in fake_gateway.calendars

    resp = client.post("/calendar/ensure", headers=auth_headers(user))
    assert resp.json()["action"] == "REUSED"
    assert resp.json()["calendarId"] == first["calendarId"]

    status = client.get("/calendar/status", headers=auth_headers(user)).json()
    assert status["connected"] is True
    assert status["sync"]["enabled"] is True
    assert status["sync"]["pending"] is True
    assert status["sync"]["calendarId"] == first["calendarId"]


def test_ensure_without_google_account(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db)
    resp = TestClient(app).post("/calendar/ensure", headers=auth_headers(user))
    assert resp.status_code == 400


def test_manual_sync_returns_errors_inline(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db, enabled=True)
    link_google(db, user)
    ok = make_event(db, "Ok")
    bad = make_event(db, "Bad")
    fake_gateway.fail_event_ids.add(bad.id)

    resp = TestClient(app).post("/calendar/sync", headers=auth_headers(user))

    assert resp.status_code == 200
    data = resp.json()
    assert data["created"] == 1
    assert data["deleted"] == 0
    assert data["errors"] == [f"Event {bad.id}: backend error"]
    db.refresh(user)
    assert fake_gateway.uids(user.gcal_calendar_id) == {generate_event_ical_uid(ok.id)}
    assert user.gcal_last_sync_error == f"Event {bad.id}: backend error"


def test_manual_sync_requires_enabled_sync(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db)
    resp = TestClient(app).post("/calendar/sync", headers=auth_headers(user))
    assert resp.status_code == 400


def test_manual_sync_without_account_disables_sync(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db, enabled=True, calendar_id="cal-1")
    resp = TestClient(app).post("/calendar/sync", headers=auth_headers(user))
    assert resp.status_code == 400
    db.refresh(user)
    assert user.gcal_sync_enabled is False
    assert user.gcal_sync_status == SyncStatus.ERROR


def test_mode_switch_endpoint(fake_gateway):
    db = setup_app(fake_gateway)
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, calendar_id=cal)
    link_google(db, user)
    make_event(db, "A")
    make_event(db, "B")
    client = TestClient(app)

    resp = client.patch("/calendar/mode", json={"mode": "custom"}, headers=auth_headers(user))
    assert resp.status_code == 200
    data = resp.json()
    assert data["previousMode"] == "FULL"
    assert data["newMode"] == "CUSTOM"
    assert data["created"] == 0
    assert client.get("/calendar/mode", headers=auth_headers(user)).json() == {"mode": "CUSTOM"}

    resp = client.patch("/calendar/mode", json={"mode": "FULL"}, headers=auth_headers(user))
    assert resp.json()["created"] == 2
    assert len(fake_gateway.calendars[cal]) == 2


def test_mode_switch_validation_and_not_connected(fake_gateway):
    db = setup_app(fake_gateway)
    connected = make_user(db, "on@example.com", enabled=True, calendar_id="cal-x")
    disconnected = make_user(db, "off@example.com")
    client = TestClient(app)

    resp = client.patch("/calendar/mode", json={"mode": "weekly"}, headers=auth_headers(connected))
    assert resp.status_code == 422
    assert "detail" in resp.json()

    resp = client.patch("/calendar/mode", json={"mode": "FULL"}, headers=auth_headers(disconnected))
    assert resp.status_code == 400


def test_mode_switch_without_token_still_updates_mode(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db, enabled=True, calendar_id="cal-x")
    resp = TestClient(app).patch("/calendar/mode", json={"mode": "CUSTOM"}, headers=auth_headers(user))
    assert resp.status_code == 200
    assert "reconnect" in resp.json()["message"]
    db.refresh(user)
    assert user.gcal_sync_mode == SyncMode.CUSTOM


def test_disconnect_clears_sync_state_but_keeps_account(monkeypatch, fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db, enabled=True, calendar_id="cal-1")
    link_google(db, user)
    db.add(UserEventSync(user_id=user.id, event_id=1, external_event_id="gev-1"))
    db.commit()
    revoke = Mock(return_value=False)
    monkeypatch.setattr(api_calendar, "revoke_tokens", revoke)

    resp = TestClient(app).post("/calendar/disconnect", headers=auth_headers(user))

    assert resp.status_code == 200
    assert revoke.call_count == 1
    db.refresh(user)
    assert user.gcal_sync_enabled is False
    assert user.gcal_sync_status == SyncStatus.DISABLED
    assert user.gcal_calendar_id is None
    assert db.query(UserEventSync).count() == 0
    assert db.query(LinkedAccount).count() == 1


def test_healthz():
    assert TestClient(app).get("/healthz").json() == {"status": "ok"}


def test_reconnect_after_disconnect_reuses_calendar(monkeypatch, fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db)
    link_google(db, user)
    make_event(db, "A")
    make_event(db, "B")
    monkeypatch.setattr(api_calendar, "revoke_tokens", Mock(return_value=True))
    client = TestClient(app)

    first = client.post("/calendar/ensure", headers=auth_headers(user)).json()
    assert client.post("/calendar/sync", headers=auth_headers(user)).json()["created"] == 2
    assert client.post("/calendar/disconnect", headers=auth_headers(user)).status_code == 200

    again = client.post("/calendar/ensure", headers=auth_headers(user)).json()
    assert again["calendarId"] == first["calendarId"]
    assert again["action"] == "REUSED"
    client.post("/calendar/sync", headers=auth_headers(user))

    assert list(fake_gateway.calendars) == [first["calendarId"]]
    assert len(fake_gateway.calendars[first["calendarId"]]) == 2


def test_cleanup_primary_deletes_events_pushed_there(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db)
    link_google(db, user)
    first = make_event(db, "A")
    make_event(db, "B")
    fake_gateway.calendars["primary"] = {
        "old-1": {"iCalUID": generate_event_ical_uid(first.id), "summary": "A"},
        "mine": {"iCalUID": "birthday@example.com", "summary": "Birthday"},
    }
    client = TestClient(app)

    resp = client.post("/calendar/cleanup-primary", headers=auth_headers(user))

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert (data["found"], data["deleted"], data["errors"]) == (1, 1, [])
    assert data["message"] == "Found 1 event(s) in primary calendar, deleted 1"
    assert list(fake_gateway.calendars["primary"]) == ["mine"]


def test_cleanup_primary_requires_google_account(fake_gateway):
    db = setup_app(fake_gateway)
    user = make_user(db)
    resp = TestClient(app).post("/calendar/cleanup-primary", headers=auth_headers(user))
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Google Calendar not connected"
