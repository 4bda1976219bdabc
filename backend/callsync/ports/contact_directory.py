from __future__ import annotations
from typing import Protocol, Optional
from sqlalchemy.orm import Session

from ..db import models
from ..domain.enums import ContactStage, ConnectionType


class ContactDirectory(Protocol):
    """Collaborator contract onto the CRM's contact store."""

    def find_by_email(self, db: Session, user_id: str, email: str) -> Optional[models.Contact]:
        """Exact, case-insensitive match."""
        ...

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
        ...

    def advance_stage(self, db: Session, contact: models.Contact, target: ContactStage) -> bool:
        """Move forward to target only when the current stage precedes it."""
        ...
