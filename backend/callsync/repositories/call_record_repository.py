from __future__ import annotations
from typing import Protocol, Set, Optional
from datetime import datetime
from sqlalchemy.orm import Session

from ..db import models
from ..domain.enums import CallStatus, PROVIDER_GOOGLE


class CallRecordRepository(Protocol):
    def mirrored_external_ids(self, db: Session, user_id: str, provider: str = PROVIDER_GOOGLE) -> Set[str]: ...

    def get_for_user(self, db: Session, user_id: str, record_id: str) -> Optional[models.CallRecord]: ...

    def add_mirror(
        self,
        db: Session,
        user_id: str,
        contact_id: Optional[str],
        external_event_id: str,
        title: str,
        start_at: datetime,
        end_at: datetime,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        provider: str = PROVIDER_GOOGLE,
    ) -> models.CallRecord: ...


class SqlAlchemyCallRecordRepository:
    def mirrored_external_ids(self, db: Session, user_id: str, provider: str = PROVIDER_GOOGLE) -> Set[str]:
        rows = (
            db.query(models.CallRecord.external_event_id)
            .filter(
                models.CallRecord.user_id == user_id,
                models.CallRecord.external_provider == provider,
                models.CallRecord.external_event_id.isnot(None),
            )
            .all()
        )
        return {r[0] for r in rows}

    def get_for_user(self, db: Session, user_id: str, record_id: str) -> Optional[models.CallRecord]:
        return (
            db.query(models.CallRecord)
            .filter(models.CallRecord.id == record_id, models.CallRecord.user_id == user_id)
            .first()
        )

    def add_mirror(
        self,
        db: Session,
        user_id: str,
        contact_id: Optional[str],
        external_event_id: str,
        title: str,
        start_at: datetime,
        end_at: datetime,
        location: Optional[str] = None,
        notes: Optional[str] = None,
        provider: str = PROVIDER_GOOGLE,
    ) -> models.CallRecord:
        """Insert and flush so the unique (user, provider, external id) key is checked now."""
        record = models.CallRecord(
            user_id=user_id,
            contact_id=contact_id,
            title=title,
            start_at=start_at,
            end_at=end_at,
            location=location,
            notes=notes,
            status=CallStatus.SCHEDULED.value,
            external_provider=provider,
            external_event_id=external_event_id,
        )
        db.add(record)
        db.flush()
        return record
