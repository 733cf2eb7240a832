import pytest
from fastapi.testclient import TestClient
from jose import jwt

from calmirror.core.config import settings
from calmirror.database import get_db
from calmirror.main import app
from calmirror.models import EventFollow, FilterExclusion, FollowSource, SyncMode

from backend.tests.factories import make_event, make_user, setup_db


@pytest.fixture
def api():
    db = setup_db()

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    yield db, TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user):
    token = jwt.encode({"sub": user.email}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


def _seed_events(db):
    ctv = [make_event(db, f"CTV {i}", tags=["ctv"]) for i in range(2)]
    for i in range(4):
        make_event(db, f"Retail {i}", tags=["retail"])
    return ctv


def test_filter_stats_preview(api):
    db, client = api
    user = make_user(db)
    _seed_events(db)

    resp = client.post(
        "/subscriptions/custom/filter/stats",
        json={"filter": {"tags": ["ctv"]}},
        headers=auth_headers(user),
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "matchCount": 2,
        "totalCount": 6,
        "percentage": 33,
        "isLarge": False,
        "description": "Tags: ctv",
    }


def test_create_filter_subscription_auto_follows(api):
    db, client = api
    user = make_user(db)
    ctv = _seed_events(db)

    resp = client.post(
        "/subscriptions/custom/filter",
        json={"filter": {"tags": ["ctv"]}},
        headers=auth_headers(user),
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["autoFollowed"] == 2
    assert data["subscription"]["kind"] == "CUSTOM"
    assert data["subscription"]["filter"]["tags"] == ["ctv"]
    assert data["subscription"]["filterDescription"] == "Tags: ctv"
    followed = {f.event_id for f in db.query(EventFollow).filter(EventFollow.user_id == user.id)}
    assert followed == {e.id for e in ctv}

    listed = client.get("/subscriptions", headers=auth_headers(user)).json()
    assert [s["id"] for s in listed] == [data["subscription"]["id"]]


def test_large_filter_returns_suggestion(api):
    db, client = api
    user = make_user(db)
    make_event(db, "A", country="US")
    make_event(db, "B", country="GB")

    resp = client.post(
        "/subscriptions/custom/filter",
        json={"filter": {"country": "US"}},
        headers=auth_headers(user),
    )

    data = resp.json()
    assert data["success"] is False
    assert data["requiresConfirmation"] is True
    assert data["suggestion"] == "FULL"
    assert data["stats"]["percentage"] == 50

    resp = client.post(
        "/subscriptions/custom/filter",
        json={"filter": {"country": "US"}, "confirmLargeFilter": True},
        headers=auth_headers(user),
    )
    assert resp.json()["success"] is True


def test_empty_filter_is_400_with_field_errors(api):
    db, client = api
    user = make_user(db)
    resp = client.post(
        "/subscriptions/custom/filter", json={"filter": {}}, headers=auth_headers(user)
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["field_errors"] == {"filter": "empty"}


def test_delete_subscription_cleanup_flow(api):
    db, client = api
    user = make_user(db)
    _seed_events(db)
    created = client.post(
        "/subscriptions/custom/filter",
        json={"filter": {"tags": ["ctv"]}},
        headers=auth_headers(user),
    ).json()
    sub_id = created["subscription"]["id"]

    resp = client.request("DELETE", f"/subscriptions/{sub_id}", headers=auth_headers(user))
    assert resp.json() == {
        "success": False,
        "requiresCleanupChoice": True,
        "followCount": 2,
        "message": "This subscription has 2 followed events. Keep them as manual follows or remove them?",
    }

    resp = client.request(
        "DELETE",
        f"/subscriptions/{sub_id}",
        json={"keepFollows": True},
        headers=auth_headers(user),
    )
    assert resp.json() == {"success": True, "followCount": 2, "keptFollows": True}
    rows = db.query(EventFollow).filter(EventFollow.user_id == user.id).all()
    assert {r.source for r in rows} == {FollowSource.MANUAL}
    assert all(r.subscription_id is None for r in rows)

    assert client.get(f"/subscriptions/{sub_id}", headers=auth_headers(user)).status_code == 404


def test_other_users_subscription_is_404(api):
    db, client = api
    owner = make_user(db, "owner@example.com")
    other = make_user(db, "other@example.com")
    sub = client.post("/subscriptions/full/toggle", headers=auth_headers(owner)).json()

    resp = client.get(f"/subscriptions/{sub['id']}", headers=auth_headers(other))
    assert resp.status_code == 404
    resp = client.request("DELETE", f"/subscriptions/{sub['id']}", headers=auth_headers(other))
    assert resp.status_code == 404


def test_toggle_full_subscription(api):
    db, client = api
    user = make_user(db)
    first = client.post("/subscriptions/full/toggle", headers=auth_headers(user)).json()
    assert first["kind"] == "FULL"
    assert first["active"] is True
    second = client.post("/subscriptions/full/toggle", headers=auth_headers(user)).json()
    assert second["id"] == first["id"]
    assert second["active"] is False


def test_follow_and_unfollow_routes(api):
    db, client = api
    user = make_user(db, enabled=True, mode=SyncMode.CUSTOM)
    event = make_event(db)

    resp = client.post("/follow", json={"eventId": event.id}, headers=auth_headers(user))
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["follow"]["eventId"] == event.id
    assert body["follow"]["source"] == "MANUAL"

    resp = client.post("/follow", json={"eventId": event.id}, headers=auth_headers(user))
    assert resp.status_code == 400

    resp = client.post("/unfollow", json={"eventId": event.id}, headers=auth_headers(user))
    assert resp.json() == {"success": True}
    assert db.query(EventFollow).count() == 0
    assert db.query(FilterExclusion).count() == 0

    resp = client.post("/unfollow", json={"eventId": event.id}, headers=auth_headers(user))
    assert resp.status_code == 404


def test_follow_unknown_event_is_404(api):
    db, client = api
    user = make_user(db)
    resp = client.post("/follow", json={"eventId": 12345}, headers=auth_headers(user))
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Event not found"
