from datetime import date, datetime, timezone

from callsync.services.availability_service import AvailabilityPolicy
from callsync.services.calendar_client import CalendarClient
from callsync.services.outreach_service import FLEXIBILITY_NOTE, OutreachComposer, splice_availability

from fakes import FakeProvider, connect, factory_for, gevent, make_user, make_vault

ANCHOR = date(2026, 10, 16)
LINES = ["Monday (10/19): 9am - 10pm ET", "Tuesday (10/20): 9am - 10pm ET"]
BLOCK = "\n".join(LINES + [FLEXIBILITY_NOTE])


def test_placeholder_is_replaced_once():
    body = "Hi Alice,\n\nWould any of these work?\n{{AVAILABILITY}}\n\nBest,\nSam {{AVAILABILITY}}"

    out = splice_availability(body, LINES)

    assert out == f"Hi Alice,\n\nWould any of these work?\n{BLOCK}\n\nBest,\nSam {{{{AVAILABILITY}}}}"


def test_block_goes_before_last_sign_off():
    body = "Hi Alice,\n\nBest, regards to the team.\nAre you free?\n\nBest,\nSam"

    out = splice_availability(body, LINES)

    assert out.endswith(f"Are you free?\n\n\n{BLOCK}\n\nBest,\nSam")


def test_block_is_appended_without_sign_off():
    assert splice_availability("Hi Alice", LINES) == f"Hi Alice\n\n{BLOCK}"


def test_disconnected_calendar_reports_all_free(db):
    make_user(db)
    client = CalendarClient(make_vault(), provider_factory=factory_for(FakeProvider()))
    composer = OutreachComposer(client, AvailabilityPolicy())

    lines = composer.availability_for_user(db, "u1", ANCHOR)

    assert len(lines) == 5
    assert all(line.endswith("9am - 10pm ET") for line in lines)


def test_compose_uses_busy_calendar(db):
    make_user(db)
    vault = make_vault()
    connect(db, vault)
    busy = datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc)
    provider = FakeProvider([gevent("e1", busy, minutes=60)])
    composer = OutreachComposer(CalendarClient(vault, provider_factory=factory_for(provider)), AvailabilityPolicy())

    out = composer.compose(db, "u1", "Hi Alice,\n{{AVAILABILITY}}\nBest,\nSam", ANCHOR)

    assert "Monday (10/19): 9am - 10am; 11am - 10pm ET" in out
    assert "{{AVAILABILITY}}" not in out
    _, _, time_min, time_max = provider.calls[0]
    assert time_min == "2026-10-16T12:00:00Z"
    assert time_max == "2026-10-31T05:00:00Z"


def test_fetch_covers_evening_of_last_scanned_day(db):
    make_user(db)
    vault = make_vault()
    connect(db, vault)
    # Friday 10/30, 9pm ET: after midday UTC on the last scanned day
    late = datetime(2026, 10, 31, 2, 0, tzinfo=timezone.utc)
    provider = FakeProvider([gevent("e_late", late, minutes=60)])
    policy = AvailabilityPolicy(target_weekdays=10, max_scan_days=14)
    composer = OutreachComposer(CalendarClient(vault, provider_factory=factory_for(provider)), policy)

    lines = composer.availability_for_user(db, "u1", ANCHOR)

    _, _, time_min, time_max = provider.calls[0]
    assert time_min <= late.isoformat().replace("+00:00", "Z") < time_max
    assert lines[-1] == "Friday (10/30): 9am - 9pm ET"
