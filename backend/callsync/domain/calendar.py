"""Value objects shared by the sync, push and availability components."""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import ValidationAppError
from .enums import EventStatus

UNTITLED = "(No title)"


def as_utc(dt: datetime) -> datetime:
    """Normalize to aware UTC. Naive values (SQLite round-trips) are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def to_rfc3339(dt: datetime) -> str:
    return as_utc(dt).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class SyncWindow:
    time_min: datetime
    time_max: datetime

    def __post_init__(self):
        if self.time_min is None or self.time_max is None:
            raise ValidationAppError("WINDOW_INVALID", "timeMin and timeMax are required")
        if self.time_min.tzinfo is None or self.time_max.tzinfo is None:
            raise ValidationAppError("WINDOW_INVALID", "timeMin/timeMax must carry a UTC offset")
        if self.time_min >= self.time_max:
            raise ValidationAppError("WINDOW_INVALID", "timeMin must be before timeMax")


@dataclass(frozen=True)
class Attendee:
    email: str
    display_name: Optional[str] = None
    is_self: bool = False


@dataclass(frozen=True)
class ExternalEvent:
    id: str
    title: str
    start_at: datetime
    end_at: datetime
    status: EventStatus = EventStatus.CONFIRMED
    location: Optional[str] = None
    description: Optional[str] = None
    attendees: List[Attendee] = field(default_factory=list)

    @property
    def is_cancelled(self) -> bool:
        return self.status == EventStatus.CANCELLED

    def guests(self, owner_email: Optional[str] = None) -> List[Attendee]:
        """Attendees other than the account owner."""
        owner = owner_email.lower() if owner_email else None
        return [
            a for a in self.attendees
            if not a.is_self and a.email and a.email.lower() != owner
        ]

    @classmethod
    def from_google(cls, item: Dict[str, Any]) -> Optional["ExternalEvent"]:
        """Build from a Google events resource. Returns None without concrete start/end."""
        start = item.get("start") or {}
        end = item.get("end") or {}
        if "dateTime" not in start or "dateTime" not in end:
            return None
        try:
            status = EventStatus(item.get("status") or "confirmed")
        except ValueError:
            status = EventStatus.CONFIRMED
        attendees = [
            Attendee(
                email=a["email"],
                display_name=a.get("displayName"),
                is_self=bool(a.get("self")),
            )
            for a in item.get("attendees") or []
            if a.get("email")
        ]
        return cls(
            id=item["id"],
            title=item.get("summary") or UNTITLED,
            start_at=parse_rfc3339(start["dateTime"]),
            end_at=parse_rfc3339(end["dateTime"]),
            status=status,
            location=item.get("location"),
            description=item.get("description"),
            attendees=attendees,
        )


@dataclass
class EventPage:
    """One provider page split into usable events and what was dropped."""
    events: List[ExternalEvent] = field(default_factory=list)
    cancelled: int = 0
    untimed: int = 0


@dataclass
class PendingAttendee:
    email: str
    display_name: str
    external_event_id: str
    event_title: str
    start_at: datetime
    end_at: datetime
    location: Optional[str] = None
    notes: Optional[str] = None

    @classmethod
    def from_event(cls, attendee: Attendee, event: ExternalEvent) -> "PendingAttendee":
        email = attendee.email.lower()
        return cls(
            email=email,
            display_name=attendee.display_name or email.split("@")[0],
            external_event_id=event.id,
            event_title=event.title,
            start_at=event.start_at,
            end_at=event.end_at,
            location=event.location,
            notes=event.description,
        )


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
