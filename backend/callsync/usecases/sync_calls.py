from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..db import models
from ..domain.calendar import ExternalEvent, PendingAttendee, SyncWindow
from ..domain.enums import ContactStage
from ..errors import BaseAppException
from ..ports.contact_directory import ContactDirectory
from ..repositories.call_record_repository import CallRecordRepository, SqlAlchemyCallRecordRepository
from ..repositories.contact_repository import SqlAlchemyContactDirectory
from ..services.calendar_client import CalendarClient
from ..services.lease import LeaseManager, SCOPE_SYNC
from ..services.metrics import SYNC_EVENT_COUNT, SYNC_PASS_COUNT, SYNC_PASS_DURATION

logger = logging.getLogger(__name__)


@dataclass
class SyncCallsResult:
    synced: int
    skipped: int
    pending: List[PendingAttendee] = field(default_factory=list)


class SyncCallsUseCase:
    """Mirror guest-bearing calendar events into call records.

    Attendees that match a contact by email are linked automatically. The
    rest come back as `pending` for a human to confirm; nothing is created
    for them here.
    """

    def __init__(
        self,
        client: CalendarClient,
        contacts: ContactDirectory | None = None,
        call_repo: CallRecordRepository | None = None,
        leases: LeaseManager | None = None,
    ):
        self.client = client
        self.contacts = contacts or SqlAlchemyContactDirectory()
        self.call_repo = call_repo or SqlAlchemyCallRecordRepository()
        self.leases = leases or client.vault.leases

    def execute(
        self,
        db: Session,
        user: models.User,
        window: SyncWindow,
        calendar_id: Optional[str] = None,
    ) -> SyncCallsResult:
        credential = self.client.vault.get(db, user.id)
        try:
            with SYNC_PASS_DURATION.time(), self.leases.hold(db, SCOPE_SYNC, user.id):
                result = self._run(db, user.id, user.email, credential, window, calendar_id)
        except BaseAppException as e:
            SYNC_PASS_COUNT.labels(outcome=e.code.lower()).inc()
            raise
        SYNC_PASS_COUNT.labels(outcome="success").inc()
        logger.info(
            "Sync pass for user %s: synced=%d skipped=%d pending=%d",
            user.id, result.synced, result.skipped, len(result.pending),
        )
        return result

    def _run(
        self,
        db: Session,
        user_id: str,
        owner_email: str,
        credential: models.OAuthCredential,
        window: SyncWindow,
        calendar_id: Optional[str],
    ) -> SyncCallsResult:
        # Recomputed from storage on every pass; never cached between passes.
        mirrored = self.call_repo.mirrored_external_ids(db, user_id)
        page = self.client.list_event_page(db, credential, calendar_id, window)

        synced = 0
        skipped = page.cancelled + page.untimed
        pending: Dict[str, PendingAttendee] = {}
        SYNC_EVENT_COUNT.labels(result="cancelled").inc(page.cancelled)

        for event in page.events:
            if event.id in mirrored:
                skipped += 1
                SYNC_EVENT_COUNT.labels(result="already_synced").inc()
                continue
            guests = event.guests(owner_email)
            if not guests:
                skipped += 1
                SYNC_EVENT_COUNT.labels(result="no_guests").inc()
                continue

            failed = False
            for attendee in guests:
                email = attendee.email.lower()
                try:
                    contact = self.contacts.find_by_email(db, user_id, email)
                except Exception:  # collaborator or database failure skips the event
                    logger.warning("Contact lookup failed for event %s", event.id, exc_info=True)
                    db.rollback()
                    failed = True
                    continue
                if contact is None:
                    # first event seen for this email keeps its context
                    pending.setdefault(email, PendingAttendee.from_event(attendee, event))
                    continue
                if event.id in mirrored:
                    # one record per external event; a second matched guest adds nothing
                    continue
                if self._mirror(db, user_id, contact, event):
                    mirrored.add(event.id)
                    synced += 1
                    SYNC_EVENT_COUNT.labels(result="synced").inc()
                else:
                    failed = True

            if failed and event.id not in mirrored:
                skipped += 1
                SYNC_EVENT_COUNT.labels(result="failed").inc()

        return SyncCallsResult(synced=synced, skipped=skipped, pending=list(pending.values()))

    def _mirror(self, db: Session, user_id: str, contact: models.Contact, event: ExternalEvent) -> bool:
        """Create the call record and advance the contact as one unit of work."""
        try:
            self.call_repo.add_mirror(
                db,
                user_id=user_id,
                contact_id=contact.id,
                external_event_id=event.id,
                title=event.title,
                start_at=event.start_at,
                end_at=event.end_at,
                location=event.location,
                notes=event.description,
            )
            self.contacts.advance_stage(db, contact, ContactStage.SCHEDULED)
            db.commit()
            return True
        except Exception:
            # includes a concurrent writer winning the unique (user, provider, external id) key
            logger.warning("Failed to mirror event %s for user %s", event.id, user_id, exc_info=True)
            db.rollback()
            return False
