"""Availability block for outreach messages.

Dates and times in a generated message only ever come from
compute_availability; drafted text carries the AVAILABILITY_PLACEHOLDER and
the block is substituted in afterwards.
"""
from __future__ import annotations
import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from ..domain.calendar import SyncWindow
from ..errors import AuthExpired, AuthNotConnected, LeaseBusy, ProviderError
from .availability_service import AvailabilityPolicy, busy_intervals_from_events, compute_availability
from .calendar_client import CalendarClient

logger = logging.getLogger(__name__)

AVAILABILITY_PLACEHOLDER = "{{AVAILABILITY}}"
FLEXIBILITY_NOTE = "Happy to work around your schedule as well."
SIGN_OFF = "Best,"


def splice_availability(body: str, lines: List[str]) -> str:
    """Replace the first placeholder with the availability block.

    Without a placeholder the block goes before the last sign-off, or at the
    end when there is none.
    """
    block = "\n".join(lines + [FLEXIBILITY_NOTE])
    if AVAILABILITY_PLACEHOLDER in body:
        return body.replace(AVAILABILITY_PLACEHOLDER, block, 1)
    idx = body.rfind(SIGN_OFF)
    if idx > 0:
        return body[:idx] + "\n" + block + "\n\n" + body[idx:]
    return body + "\n\n" + block


class OutreachComposer:
    def __init__(self, client: CalendarClient, policy: Optional[AvailabilityPolicy] = None):
        self.client = client
        self.policy = policy or AvailabilityPolicy.from_env()

    def availability_for_user(self, db: Session, user_id: str, anchor: date) -> List[str]:
        """Lines for the next weekdays after `anchor`.

        When the calendar is unavailable (not connected, expired, upstream
        failure) every weekday is reported as free rather than failing the
        message.
        """
        start = datetime.combine(anchor, time(12, 0), tzinfo=timezone.utc)
        # through the end of the last scanned day in the policy's zone
        last_day = anchor + timedelta(days=self.policy.max_scan_days)
        end = datetime.combine(last_day + timedelta(days=1), time(0, 0), tzinfo=self.policy.tz)
        window = SyncWindow(start, end.astimezone(timezone.utc))
        busy = []
        try:
            credential = self.client.vault.get(db, user_id)
            events = self.client.list_events(db, credential, None, window)
            busy = busy_intervals_from_events(events)
        except (AuthNotConnected, AuthExpired, ProviderError, LeaseBusy) as e:
            logger.warning("Calendar availability unavailable for user %s (%s); assuming free", user_id, e.code)
        return compute_availability(busy, anchor, self.policy)

    def compose(self, db: Session, user_id: str, draft_body: str, anchor: date) -> str:
        return splice_availability(draft_body, self.availability_for_user(db, user_id, anchor))
