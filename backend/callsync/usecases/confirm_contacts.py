from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy.orm import Session

from ..domain.calendar import PendingAttendee
from ..domain.enums import ConnectionType, ContactStage
from ..errors import ValidationAppError
from ..ports.contact_directory import ContactDirectory
from ..repositories.call_record_repository import CallRecordRepository, SqlAlchemyCallRecordRepository
from ..repositories.contact_repository import SqlAlchemyContactDirectory
from ..services.metrics import CONFIRM_COUNT

logger = logging.getLogger(__name__)


@dataclass
class ConfirmedAttendee:
    """A pending attendee the user approved, with the contact details they filled in."""
    pending: PendingAttendee
    name: Optional[str] = None
    firm: Optional[str] = None
    position: Optional[str] = None
    connection_type: ConnectionType = ConnectionType.COLD


class PendingAttendeeQueue:
    """Unmatched attendees awaiting confirmation, keyed by lowercased email."""

    def __init__(self, entries: Iterable[PendingAttendee] = ()):
        self._entries: Dict[str, PendingAttendee] = {}
        self.extend(entries)

    def extend(self, entries: Iterable[PendingAttendee]) -> None:
        for entry in entries:
            self._entries.setdefault(entry.email.lower(), entry)

    def get(self, email: str) -> Optional[PendingAttendee]:
        return self._entries.get(email.lower())

    def remove(self, email: str) -> None:
        self._entries.pop(email.lower(), None)

    def __contains__(self, email: str) -> bool:
        return email.lower() in self._entries

    def __iter__(self) -> Iterator[PendingAttendee]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)


class ConfirmContactsUseCase:
    def __init__(
        self,
        contacts: ContactDirectory | None = None,
        call_repo: CallRecordRepository | None = None,
    ):
        self.contacts = contacts or SqlAlchemyContactDirectory()
        self.call_repo = call_repo or SqlAlchemyCallRecordRepository()

    def confirm(
        self,
        db: Session,
        user_id: str,
        approved: List[ConfirmedAttendee],
        queue: Optional[PendingAttendeeQueue] = None,
    ) -> int:
        """Create a contact and its call record per approved entry; returns successes.

        Entries are independent: a failure is logged, rolled back and left in
        the queue for a later attempt.
        """
        if not approved:
            raise ValidationAppError("NO_CONTACTS", "No contacts provided")
        mirrored = self.call_repo.mirrored_external_ids(db, user_id)
        created = 0
        for entry in approved:
            pending = entry.pending
            try:
                contact = self.contacts.create_contact(
                    db,
                    user_id,
                    name=entry.name or pending.display_name,
                    email=pending.email,
                    stage=ContactStage.SCHEDULED,
                    firm=entry.firm,
                    position=entry.position,
                    connection_type=entry.connection_type,
                )
                if pending.external_event_id in mirrored:
                    # event already mirrored through another attendee; the contact is all that is missing
                    logger.info("Event %s already mirrored; created contact only", pending.external_event_id)
                else:
                    self.call_repo.add_mirror(
                        db,
                        user_id=user_id,
                        contact_id=contact.id,
                        external_event_id=pending.external_event_id,
                        title=pending.event_title,
                        start_at=pending.start_at,
                        end_at=pending.end_at,
                        location=pending.location,
                        notes=pending.notes,
                    )
                db.commit()
            except Exception:  # collaborator or database failure; the entry stays queued
                logger.warning("Failed to confirm pending attendee for event %s", pending.external_event_id, exc_info=True)
                db.rollback()
                CONFIRM_COUNT.labels(outcome="error").inc()
                continue
            mirrored.add(pending.external_event_id)
            if queue is not None:
                queue.remove(pending.email)
            created += 1
            CONFIRM_COUNT.labels(outcome="success").inc()
        return created
