from __future__ import annotations
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from callsync.db import models
from callsync.domain.calendar import SyncWindow, as_utc
from callsync.errors import AuthNotConnected, LeaseBusy, ValidationAppError
from callsync.repositories.contact_repository import SqlAlchemyContactDirectory
from callsync.services.calendar_client import CalendarClient
from callsync.services.lease import SCOPE_SYNC
from callsync.usecases.sync_calls import SyncCallsUseCase

from fakes import FakeProvider, connect, factory_for, gevent, make_contact, make_user, make_vault

NOW = datetime.now(timezone.utc).replace(microsecond=0)
OWNER = {"email": "owner@example.com", "self": True}


def window() -> SyncWindow:
    return SyncWindow(NOW - timedelta(days=1), NOW + timedelta(days=30))


def setup(db, events):
    user = make_user(db)
    vault = make_vault()
    connect(db, vault)
    provider = FakeProvider(events)
    client = CalendarClient(vault, provider_factory=factory_for(provider))
    return user, vault, provider, client


def test_sync_mirrors_matched_event_and_skips_the_rest(db):
    events = [
        gevent("e_cancelled", NOW + timedelta(days=1), [OWNER, {"email": "a@x.com"}], status="cancelled"),
        gevent("e_solo", NOW + timedelta(days=2), [OWNER]),
        gevent("e_alice", NOW + timedelta(days=3), [OWNER, {"email": "a@x.com", "displayName": "Alice"}],
               location="Zoom", description="Intro via Bob"),
    ]
    user, _, _, client = setup(db, events)
    alice = make_contact(db)

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert (res.synced, res.skipped, res.pending) == (1, 2, [])
    rec = db.query(models.CallRecord).one()
    assert rec.contact_id == alice.id
    assert rec.external_event_id == "e_alice"
    assert rec.external_provider == "google"
    assert rec.title == "Coffee chat"
    assert rec.location == "Zoom"
    assert rec.notes == "Intro via Bob"
    assert as_utc(rec.start_at) == NOW + timedelta(days=3)
    db.refresh(alice)
    assert alice.stage == "scheduled"


def test_second_pass_creates_nothing(db):
    events = [gevent("e1", NOW + timedelta(days=1), [{"email": "a@x.com"}])]
    user, _, _, client = setup(db, events)
    make_contact(db)
    uc = SyncCallsUseCase(client)

    first = uc.execute(db, user, window())
    second = uc.execute(db, user, window())

    assert first.synced == 1
    assert (second.synced, second.skipped) == (0, 1)
    assert db.query(models.CallRecord).count() == 1


def test_attendee_match_is_case_insensitive(db):
    events = [gevent("e1", NOW + timedelta(days=1), [{"email": "A@X.COM"}])]
    user, _, _, client = setup(db, events)
    make_contact(db, email="a@x.com")

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert res.synced == 1
    assert res.pending == []


def test_unmatched_attendees_are_pending_once_per_email(db):
    events = [
        gevent("e_late", NOW + timedelta(days=5), [{"email": "b@y.com"}], summary="Second"),
        gevent("e_early", NOW + timedelta(days=1), [{"email": "B@y.com", "displayName": "Bea"}], summary=None),
    ]
    user, _, _, client = setup(db, events)

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert res.synced == 0
    assert len(res.pending) == 1
    p = res.pending[0]
    assert p.email == "b@y.com"
    assert p.display_name == "Bea"
    assert p.external_event_id == "e_early"
    assert p.event_title == "(No title)"
    assert db.query(models.Contact).count() == 0
    assert db.query(models.CallRecord).count() == 0


def test_pending_display_name_defaults_to_local_part(db):
    events = [gevent("e1", NOW + timedelta(days=1), [{"email": "carol.chen@firm.com"}])]
    user, _, _, client = setup(db, events)

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert res.pending[0].display_name == "carol.chen"


def test_stage_never_moves_backwards(db):
    events = [gevent("e1", NOW + timedelta(days=1), [{"email": "a@x.com"}])]
    user, _, _, client = setup(db, events)
    alice = make_contact(db, stage="interview")

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert res.synced == 1
    db.refresh(alice)
    assert alice.stage == "interview"


def test_two_matched_guests_share_one_record(db):
    events = [gevent("e1", NOW + timedelta(days=1), [{"email": "a@x.com"}, {"email": "d@x.com"}])]
    user, _, _, client = setup(db, events)
    alice = make_contact(db)
    dan = make_contact(db, name="Dan", email="d@x.com")

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert res.synced == 1
    rec = db.query(models.CallRecord).one()
    assert rec.contact_id == alice.id
    db.refresh(dan)
    assert dan.stage == "messaged"


def test_all_day_events_are_skipped(db):
    all_day = {"id": "e_day", "status": "confirmed", "summary": "Offsite",
               "start": {"date": "2026-10-20"}, "end": {"date": "2026-10-21"},
               "attendees": [{"email": "a@x.com"}]}
    user, _, _, client = setup(db, [all_day])
    make_contact(db)

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert (res.synced, res.skipped) == (0, 1)


class FlakyDirectory(SqlAlchemyContactDirectory):
    def __init__(self, broken_email: str, error: Exception = SQLAlchemyError("lookup failed")):
        self.broken_email = broken_email
        self.error = error

    def find_by_email(self, db, user_id, email):
        if email == self.broken_email:
            raise self.error
        return super().find_by_email(db, user_id, email)


class StageRejectingDirectory(SqlAlchemyContactDirectory):
    def advance_stage(self, db, contact, target):
        if contact.email == "d@x.com":
            raise ValueError("stage write rejected")
        return super().advance_stage(db, contact, target)


@pytest.mark.parametrize("error", [
    SQLAlchemyError("lookup failed"),
    ConnectionError("directory unreachable"),
    ValidationAppError("LOOKUP_REJECTED", "rejected"),
])
def test_lookup_failure_skips_only_that_event(db, error):
    events = [
        gevent("e_bad", NOW + timedelta(days=1), [{"email": "broken@x.com"}]),
        gevent("e_ok", NOW + timedelta(days=2), [{"email": "a@x.com"}]),
    ]
    user, _, _, client = setup(db, events)
    make_contact(db)

    res = SyncCallsUseCase(client, contacts=FlakyDirectory("broken@x.com", error)).execute(db, user, window())

    assert (res.synced, res.skipped) == (1, 1)
    assert [r.external_event_id for r in db.query(models.CallRecord).all()] == ["e_ok"]


def test_mirror_failure_rolls_back_that_event_only(db):
    events = [
        gevent("e_dan", NOW + timedelta(days=1), [{"email": "d@x.com"}]),
        gevent("e_alice", NOW + timedelta(days=2), [{"email": "a@x.com"}]),
    ]
    user, _, _, client = setup(db, events)
    make_contact(db)
    make_contact(db, name="Dan", email="d@x.com")

    res = SyncCallsUseCase(client, contacts=StageRejectingDirectory()).execute(db, user, window())

    assert (res.synced, res.skipped) == (1, 1)
    assert [r.external_event_id for r in db.query(models.CallRecord).all()] == ["e_alice"]


def test_overlapping_windows_do_not_duplicate(db):
    events = [
        gevent("e1", NOW + timedelta(days=3), [{"email": "a@x.com"}]),
        gevent("e2", NOW + timedelta(days=20), [{"email": "a@x.com"}]),
    ]
    user, _, provider, client = setup(db, events[:1])
    make_contact(db)
    uc = SyncCallsUseCase(client)

    first = uc.execute(db, user, SyncWindow(NOW - timedelta(days=1), NOW + timedelta(days=10)))
    provider.events = events
    shifted = uc.execute(db, user, SyncWindow(NOW + timedelta(days=2), NOW + timedelta(days=30)))
    again = uc.execute(db, user, SyncWindow(NOW, NOW + timedelta(days=25)))

    assert first.synced == 1
    assert (shifted.synced, shifted.skipped) == (1, 1)
    assert (again.synced, again.skipped) == (0, 2)
    assert sorted(r.external_event_id for r in db.query(models.CallRecord).all()) == ["e1", "e2"]


def test_owner_email_is_never_a_guest(db):
    # owner listed without the self flag, e.g. on a shared calendar
    events = [gevent("e1", NOW + timedelta(days=1), [{"email": "Owner@Example.com"}])]
    user, _, _, client = setup(db, events)
    make_contact(db, name="Me", email="owner@example.com")

    res = SyncCallsUseCase(client).execute(db, user, window())

    assert (res.synced, res.skipped) == (0, 1)


def test_sync_requires_connection(db):
    user = make_user(db)
    client = CalendarClient(make_vault(), provider_factory=factory_for(FakeProvider()))

    with pytest.raises(AuthNotConnected):
        SyncCallsUseCase(client).execute(db, user, window())


def test_concurrent_pass_is_rejected(db):
    user, vault, provider, client = setup(db, [])
    holder = vault.leases.acquire(db, SCOPE_SYNC, user.id)

    with pytest.raises(LeaseBusy) as exc:
        SyncCallsUseCase(client).execute(db, user, window())
    assert exc.value.code == "SYNC_IN_PROGRESS"
    assert provider.calls == []

    vault.leases.release(db, SCOPE_SYNC, user.id, holder)
    assert SyncCallsUseCase(client).execute(db, user, window()).synced == 0
    assert db.query(models.SyncLease).count() == 0
