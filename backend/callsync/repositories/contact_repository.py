from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import models
from ..domain.enums import ContactStage, ConnectionType
from ..ports.contact_directory import ContactDirectory


class SqlAlchemyContactDirectory(ContactDirectory):
    """Contact collaborator backed by the local `contacts` table."""

    def find_by_email(self, db: Session, user_id: str, email: str) -> Optional[models.Contact]:
        if not email:
            return None
        return (
            db.query(models.Contact)
            .filter(
                models.Contact.user_id == user_id,
                func.lower(models.Contact.email) == email.strip().lower(),
            )
            .order_by(models.Contact.created_at)
            .first()
        )

    def create_contact(
        self,
        db: Session,
        user_id: str,
        name: str,
        email: str,
        stage: ContactStage,
        firm: Optional[str] = None,
        position: Optional[str] = None,
        connection_type: ConnectionType = ConnectionType.COLD,
    ) -> models.Contact:
        contact = models.Contact(
            user_id=user_id,
            name=name,
            email=email,
            firm=firm or None,
            position=position or None,
            connection_type=ConnectionType(connection_type).value,
            stage=ContactStage(stage).value,
        )
        db.add(contact)
        db.flush()
        return contact

    def advance_stage(self, db: Session, contact: models.Contact, target: ContactStage) -> bool:
        try:
            current = ContactStage(contact.stage)
        except ValueError:
            current = None
        if current is not None and not current.precedes(target):
            return False
        contact.stage = target.value
        contact.updated_at = datetime.now(timezone.utc)
        return True
