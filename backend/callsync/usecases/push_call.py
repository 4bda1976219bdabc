from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..db import models
from ..domain.calendar import as_utc
from ..domain.enums import PushAction, PROVIDER_GOOGLE
from ..errors import BaseAppException, NotFoundError, ValidationAppError
from ..repositories.call_record_repository import CallRecordRepository, SqlAlchemyCallRecordRepository
from ..services.calendar_client import CalendarClient
from ..services.metrics import PUSH_COUNT

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    action: PushAction
    external_event_id: Optional[str]


def build_event_body(record: models.CallRecord, contact: Optional[models.Contact], attendee_email: Optional[str] = None) -> Dict[str, Any]:
    """Google events resource for a call record. Times are always sent as UTC."""
    contact_line = None
    if contact is not None:
        contact_line = f"Contact: {contact.name}" + (f" ({contact.firm})" if contact.firm else "")
    description = "\n\n".join(part for part in (record.notes, contact_line) if part)
    body: Dict[str, Any] = {
        "summary": record.title,
        "description": description,
        "start": {"dateTime": as_utc(record.start_at).isoformat(), "timeZone": "UTC"},
        "end": {"dateTime": as_utc(record.end_at).isoformat(), "timeZone": "UTC"},
    }
    if record.location:
        body["location"] = record.location
    if attendee_email:
        body["attendees"] = [{"email": attendee_email}]
    return body


class PushCallUseCase:
    """Propagate a call record mutation to the external calendar.

    create with an existing external id becomes update; update without one
    becomes create; delete without one is a no-op. Each action can therefore
    be retried safely.
    """

    def __init__(self, client: CalendarClient, call_repo: CallRecordRepository | None = None):
        self.client = client
        self.call_repo = call_repo or SqlAlchemyCallRecordRepository()

    def apply(
        self,
        db: Session,
        user_id: str,
        record_id: str,
        action: PushAction | str,
        attendee_email: Optional[str] = None,
    ) -> PushResult:
        try:
            action = PushAction(action)
        except ValueError:
            raise ValidationAppError("INVALID_ACTION", f"unknown push action: {action}")
        record = self.call_repo.get_for_user(db, user_id, record_id)
        if record is None:
            raise NotFoundError("CALL_RECORD_NOT_FOUND", "Call record not found")
        if action == PushAction.DELETE and not record.external_event_id:
            PUSH_COUNT.labels(action=action.value, outcome="noop").inc()
            return PushResult(action=PushAction.DELETE, external_event_id=None)

        try:
            credential = self.client.vault.get(db, user_id)
            if action == PushAction.DELETE:
                result = self._delete(db, credential, record)
            elif record.external_event_id:
                result = self._update(db, credential, record, attendee_email)
            else:
                result = self._create(db, credential, record, attendee_email, requested=action)
        except BaseAppException as e:
            PUSH_COUNT.labels(action=action.value, outcome=e.code.lower()).inc()
            raise
        PUSH_COUNT.labels(action=action.value, outcome="success").inc()
        return result

    def _contact(self, db: Session, record: models.CallRecord) -> Optional[models.Contact]:
        if not record.contact_id:
            return None
        return db.query(models.Contact).filter(models.Contact.id == record.contact_id).first()

    def _create(self, db, credential, record, attendee_email, requested: PushAction) -> PushResult:
        if requested == PushAction.UPDATE:
            logger.info("Call record %s has no external event yet; creating instead of updating", record.id)
        body = build_event_body(record, self._contact(db, record), attendee_email)
        created = self.client.create_event(
            db, credential, None, body, notify_attendees=bool(attendee_email)
        )
        record.external_provider = PROVIDER_GOOGLE
        record.external_event_id = created["id"]
        record.updated_at = datetime.now(timezone.utc)
        db.commit()
        return PushResult(action=PushAction.CREATE, external_event_id=created["id"])

    def _update(self, db, credential, record, attendee_email) -> PushResult:
        body = build_event_body(record, self._contact(db, record), attendee_email)
        updated = self.client.update_event(
            db, credential, None, body, record.external_event_id, notify_attendees=bool(attendee_email)
        )
        return PushResult(action=PushAction.UPDATE, external_event_id=updated.get("id", record.external_event_id))

    def _delete(self, db, credential, record) -> PushResult:
        self.client.delete_event(db, credential, None, record.external_event_id)
        record.external_provider = None
        record.external_event_id = None
        record.updated_at = datetime.now(timezone.utc)
        db.commit()
        return PushResult(action=PushAction.DELETE, external_event_id=None)
