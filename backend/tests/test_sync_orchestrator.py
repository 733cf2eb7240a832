from datetime import datetime, timedelta

import pytest

from calmirror.models import EventStatus, SyncMode, SyncStatus, UserEventSync
from calmirror.services.errors import AuthMissing, CalendarAuthRejected
from calmirror.services.event_mirror import EventMirror, generate_event_ical_uid
from calmirror.services.sync_orchestrator import run_for_user, sync_user, target_events

from backend.tests.factories import follow, link_google, make_event, make_user, setup_db

T = datetime(2025, 5, 1, 12, 0)


def _ledger(db, user):
    return {r.event_id for r in db.query(UserEventSync).filter(UserEventSync.user_id == user.id)}


def _seed_synced(db, gateway, user, event):
    """Push ``event`` to the user's calendar and record it as already synced."""
    ext = EventMirror(gateway).upsert(user.gcal_calendar_id, event)
    db.add(UserEventSync(user_id=user.id, event_id=event.id, external_event_id=ext, synced_at=T))
    db.commit()
    return ext


def test_target_set_follows_mode():
    db = setup_db()
    a = make_event(db, "A")
    b = make_event(db, "B")
    make_event(db, "Draft", status=EventStatus.PENDING)
    full_user = make_user(db, "full@example.com", mode=SyncMode.FULL)
    custom_user = make_user(db, "custom@example.com", mode=SyncMode.CUSTOM)
    follow(db, custom_user, b)

    assert [e.id for e in target_events(db, full_user)] == [a.id, b.id]
    assert [e.id for e in target_events(db, custom_user)] == [b.id]


def test_orphans_are_removed_and_missing_created(fake_gateway):
    db = setup_db()
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, mode=SyncMode.CUSTOM, calendar_id=cal)
    a, b, c, d = (make_event(db, name) for name in "ABCD")
    for ev in (a, b, c):
        _seed_synced(db, fake_gateway, user, ev)
    follow(db, user, b)
    follow(db, user, d)

    outcome = sync_user(db, user, fake_gateway, now=T)

    assert outcome.errors == []
    assert outcome.deleted == 2
    assert _ledger(db, user) == {b.id, d.id}
    assert fake_gateway.uids(cal) == {generate_event_ical_uid(b.id), generate_event_ical_uid(d.id)}


def test_orphan_of_deleted_event_is_removed(fake_gateway):
    db = setup_db()
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, calendar_id=cal)
    gone = make_event(db, "Gone")
    _seed_synced(db, fake_gateway, user, gone)
    db.delete(gone)
    db.commit()

    outcome = sync_user(db, user, fake_gateway, now=T)

    assert outcome.deleted == 1
    assert _ledger(db, user) == set()
    assert fake_gateway.calendars[cal] == {}


def test_incremental_pass_only_upserts_changed_events(fake_gateway):
    db = setup_db()
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, calendar_id=cal, last_synced_at=T)
    old = make_event(db, "Old", updated_at=T - timedelta(days=1))
    changed = make_event(db, "Changed", updated_at=T + timedelta(hours=1))
    same_time = make_event(db, "Boundary", updated_at=T)
    orphan = make_event(db, "Orphan", status=EventStatus.PENDING, updated_at=T - timedelta(days=3))
    for ev in (old, changed, same_time, orphan):
        _seed_synced(db, fake_gateway, user, ev)
    never_pushed = make_event(db, "New follow", updated_at=T - timedelta(days=5))
    fake_gateway.calls.clear()

    outcome = sync_user(db, user, fake_gateway, incremental=True, now=T + timedelta(hours=2))

    upserted = set(fake_gateway.upserted())
    assert generate_event_ical_uid(changed.id) in upserted
    assert generate_event_ical_uid(same_time.id) in upserted
    assert generate_event_ical_uid(never_pushed.id) in upserted
    assert generate_event_ical_uid(old.id) not in upserted
    # the orphan check still ran over the whole target set
    assert outcome.deleted == 1
    assert _ledger(db, user) == {old.id, changed.id, same_time.id, never_pushed.id}


def test_per_event_failures_are_collected(fake_gateway):
    db = setup_db()
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, calendar_id=cal)
    ok = make_event(db, "Ok")
    bad = make_event(db, "Bad")
    fake_gateway.fail_event_ids.add(bad.id)

    outcome = sync_user(db, user, fake_gateway, now=T)

    assert outcome.created == 1
    assert len(outcome.errors) == 1
    assert outcome.errors[0].startswith(f"Event {bad.id}: ")
    assert _ledger(db, user) == {ok.id}
    db.refresh(user)
    assert user.gcal_sync_pending is False
    assert user.gcal_sync_status == SyncStatus.SYNCED
    assert user.gcal_last_synced_at == T
    assert user.gcal_last_sync_error == outcome.errors[0]


def test_successful_pass_clears_previous_error(fake_gateway):
    db = setup_db()
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, calendar_id=cal)
    user.gcal_last_sync_error = "old failure"
    db.commit()
    make_event(db)

    sync_user(db, user, fake_gateway, now=T)

    db.refresh(user)
    assert user.gcal_last_sync_error is None
    assert user.gcal_last_sync_attempt_at == T


def test_run_for_user_provisions_missing_calendar(fake_gateway):
    db = setup_db()
    user = make_user(db, enabled=True)
    link_google(db, user)
    event = make_event(db)

    outcome = run_for_user(db, user, fake_gateway, now=T)

    assert outcome.created == 1
    assert fake_gateway.tokens == [("at", "rt")]
    assert user.gcal_calendar_id in fake_gateway.calendars
    assert fake_gateway.uids(user.gcal_calendar_id) == {generate_event_ical_uid(event.id)}


def test_run_for_user_recreates_stale_calendar(fake_gateway):
    db = setup_db()
    user = make_user(db, enabled=True, calendar_id="cal-removed")
    link_google(db, user)
    event = make_event(db)

    outcome = run_for_user(db, user, fake_gateway, incremental=True, now=T)

    assert outcome.created == 1
    assert user.gcal_calendar_id != "cal-removed"
    assert fake_gateway.uids(user.gcal_calendar_id) == {generate_event_ical_uid(event.id)}


def test_run_for_user_without_account_raises():
    db = setup_db()
    user = make_user(db, enabled=True, calendar_id="cal-1")
    with pytest.raises(AuthMissing):
        run_for_user(db, user, lambda token, refresh: None, now=T)


def test_rejected_token_ends_pass_without_marking_synced(fake_gateway):
    db = setup_db()
    cal = fake_gateway.create_calendar("c", "d", "UTC")
    user = make_user(db, enabled=True, calendar_id=cal)
    make_event(db, "A")
    make_event(db, "B")
    fake_gateway.rejects_token = True

    with pytest.raises(CalendarAuthRejected):
        sync_user(db, user, fake_gateway, now=T)

    db.refresh(user)
    assert user.gcal_sync_pending is True
    assert user.gcal_sync_status == SyncStatus.PENDING
    assert user.gcal_last_synced_at is None
    assert _ledger(db, user) == set()
