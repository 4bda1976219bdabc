from datetime import date, datetime, timedelta, timezone

import pytest

from callsync.domain.calendar import BusyInterval
from callsync.errors import ValidationAppError
from callsync.services.availability_service import (
    AvailabilityPolicy,
    compute_availability,
    compute_windows,
    format_hour,
)

# Friday; the scan starts on Monday 10/19
ANCHOR = date(2026, 10, 16)
ET = timezone(timedelta(hours=-5))
POLICY = AvailabilityPolicy()


def et(day, hour, minute=0):
    return datetime(2026, 10, day, hour, minute, tzinfo=ET)


def test_free_week_lists_five_full_weekdays():
    lines = compute_availability([], ANCHOR, POLICY)

    assert lines == [
        "Monday (10/19): 9am - 10pm ET",
        "Tuesday (10/20): 9am - 10pm ET",
        "Wednesday (10/21): 9am - 10pm ET",
        "Thursday (10/22): 9am - 10pm ET",
        "Friday (10/23): 9am - 10pm ET",
    ]


def test_busy_hour_splits_the_day():
    busy = [BusyInterval(et(19, 10), et(19, 11))]

    lines = compute_availability(busy, ANCHOR, POLICY)

    assert lines[0] == "Monday (10/19): 9am - 10am; 11am - 10pm ET"
    assert lines[1] == "Tuesday (10/20): 9am - 10pm ET"


def test_partial_overlap_blocks_whole_slot():
    busy = [BusyInterval(et(19, 10, 30), et(19, 11))]

    assert compute_availability(busy, ANCHOR, POLICY)[0] == "Monday (10/19): 9am - 10am; 11am - 10pm ET"


def test_touching_intervals_do_not_overlap():
    busy = [BusyInterval(et(19, 8), et(19, 9)), BusyInterval(et(19, 22), et(19, 23))]

    assert compute_availability(busy, ANCHOR, POLICY)[0] == "Monday (10/19): 9am - 10pm ET"


def test_busy_interval_given_in_utc():
    busy = [BusyInterval(datetime(2026, 10, 19, 14, 0, tzinfo=timezone.utc),
                         datetime(2026, 10, 19, 16, 0, tzinfo=timezone.utc))]

    assert compute_availability(busy, ANCHOR, POLICY)[0] == "Monday (10/19): 11am - 10pm ET"


def test_fully_booked_weekday_still_counts():
    busy = [BusyInterval(et(19, 9), et(19, 22))]

    lines = compute_availability(busy, ANCHOR, POLICY)

    assert len(lines) == 4
    assert lines[0].startswith("Tuesday (10/20)")
    assert lines[-1].startswith("Friday (10/23)")


def test_weekends_are_skipped_from_midweek_anchor():
    windows = compute_windows([], date(2026, 10, 21), POLICY)

    assert [w.day.isoformat() for w in windows] == [
        "2026-10-22", "2026-10-23", "2026-10-26", "2026-10-27", "2026-10-28",
    ]


def test_scan_is_bounded():
    policy = AvailabilityPolicy(target_weekdays=10, max_scan_days=7)

    assert len(compute_windows([], ANCHOR, policy)) == 5


def test_custom_policy_and_zone():
    policy = AvailabilityPolicy(start_hour=8, end_hour=12, utc_offset_hours=0, zone_label="UTC", target_weekdays=1)
    busy = [BusyInterval(datetime(2026, 10, 19, 9, tzinfo=timezone.utc), datetime(2026, 10, 19, 10, tzinfo=timezone.utc))]

    assert compute_availability(busy, ANCHOR, policy) == ["Monday (10/19): 8am - 9am; 10am - 12pm UTC"]


@pytest.mark.parametrize("hour,label", [(0, "12am"), (9, "9am"), (12, "12pm"), (13, "1pm"), (22, "10pm"), (24, "12am")])
def test_format_hour(hour, label):
    assert format_hour(hour) == label


def test_invalid_policy():
    with pytest.raises(ValidationAppError) as exc:
        AvailabilityPolicy(start_hour=22, end_hour=9)
    assert exc.value.code == "POLICY_INVALID"
