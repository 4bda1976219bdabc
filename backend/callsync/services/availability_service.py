"""Free-time windows for outreach messages.

Pure and deterministic: busy intervals in, labeled weekday windows out. The
work-hour policy uses a fixed numeric UTC offset. Daylight-saving rules are
deliberately not applied, so a policy configured for EST (-5) is one hour
off during EDT; deployments switch the offset explicitly.
"""
from __future__ import annotations
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Sequence, Tuple

from ..domain.calendar import BusyInterval, ExternalEvent, as_utc
from ..errors import ValidationAppError

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True)
class AvailabilityPolicy:
    start_hour: int = 9
    end_hour: int = 22
    utc_offset_hours: float = -5
    zone_label: str = "ET"
    target_weekdays: int = 5
    max_scan_days: int = 14

    def __post_init__(self):
        if not (0 <= self.start_hour < self.end_hour <= 24):
            raise ValidationAppError("POLICY_INVALID", "work hours must satisfy 0 <= start < end <= 24")
        if not (-14 <= self.utc_offset_hours <= 14):
            raise ValidationAppError("POLICY_INVALID", "utc offset out of range")
        if self.target_weekdays < 1 or self.max_scan_days < 1:
            raise ValidationAppError("POLICY_INVALID", "day counts must be positive")

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.utc_offset_hours))

    @classmethod
    def from_env(cls) -> "AvailabilityPolicy":
        return cls(
            start_hour=int(os.getenv("AVAILABILITY_START_HOUR", "9")),
            end_hour=int(os.getenv("AVAILABILITY_END_HOUR", "22")),
            utc_offset_hours=float(os.getenv("AVAILABILITY_UTC_OFFSET", "-5")),
            zone_label=os.getenv("AVAILABILITY_ZONE_LABEL", "ET"),
        )


@dataclass
class AvailabilityWindow:
    day: date
    ranges: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{DAY_NAMES[self.day.weekday()]} ({self.day.month}/{self.day.day})"

    def render(self, policy: AvailabilityPolicy) -> str:
        if self.ranges == [(policy.start_hour, policy.end_hour)]:
            return f"{self.label}: {format_hour(policy.start_hour)} - {format_hour(policy.end_hour)} {policy.zone_label}"
        parts = "; ".join(f"{format_hour(s)} - {format_hour(e)}" for s, e in self.ranges)
        return f"{self.label}: {parts} {policy.zone_label}"


def format_hour(hour: int) -> str:
    if hour in (0, 24):
        return "12am"
    if hour == 12:
        return "12pm"
    if hour < 12:
        return f"{hour}am"
    return f"{hour - 12}pm"


def busy_intervals_from_events(events: Iterable[ExternalEvent]) -> List[BusyInterval]:
    return [
        BusyInterval(start=e.start_at, end=e.end_at)
        for e in events
        if not e.is_cancelled and e.start_at < e.end_at
    ]


def _free_ranges(day: date, busy: Sequence[Tuple[datetime, datetime]], policy: AvailabilityPolicy) -> List[Tuple[int, int]]:
    day_start = datetime(day.year, day.month, day.day, tzinfo=policy.tz)
    ranges: List[Tuple[int, int]] = []
    range_start = None
    for hour in range(policy.start_hour, policy.end_hour):
        slot_start = day_start + timedelta(hours=hour)
        slot_end = slot_start + timedelta(hours=1)
        is_busy = any(b_start < slot_end and b_end > slot_start for b_start, b_end in busy)
        if not is_busy and range_start is None:
            range_start = hour
        elif is_busy and range_start is not None:
            ranges.append((range_start, hour))
            range_start = None
    if range_start is not None:
        ranges.append((range_start, policy.end_hour))
    return ranges


def compute_windows(
    busy: Iterable[BusyInterval],
    anchor: date,
    policy: AvailabilityPolicy | None = None,
) -> List[AvailabilityWindow]:
    """Scan weekdays after `anchor` and collect their free ranges.

    Stops once `target_weekdays` weekdays were examined or `max_scan_days`
    days were scanned. A fully booked weekday yields no window but still
    counts toward the target.
    """
    policy = policy or AvailabilityPolicy()
    busy_utc = [(as_utc(b.start), as_utc(b.end)) for b in busy]
    windows: List[AvailabilityWindow] = []
    weekdays_found = 0
    for offset in range(1, policy.max_scan_days + 1):
        if weekdays_found >= policy.target_weekdays:
            break
        day = anchor + timedelta(days=offset)
        if day.weekday() >= 5:
            continue
        weekdays_found += 1
        ranges = _free_ranges(day, busy_utc, policy)
        if ranges:
            windows.append(AvailabilityWindow(day=day, ranges=ranges))
    return windows


def compute_availability(
    busy: Iterable[BusyInterval],
    anchor: date,
    policy: AvailabilityPolicy | None = None,
) -> List[str]:
    policy = policy or AvailabilityPolicy()
    return [w.render(policy) for w in compute_windows(busy, anchor, policy)]
