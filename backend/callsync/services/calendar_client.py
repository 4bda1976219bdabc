"""Typed wrapper over the provider's event operations.

Every call first asks the TokenVault for a fresh credential, so a refresh (and
its persistence) always happens before the provider sees a request.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..adapters.google_calendar_provider import GoogleCalendarProvider
from ..db import models
from ..domain.calendar import EventPage, ExternalEvent, SyncWindow, to_rfc3339
from ..errors import NotFoundIgnorable, ValidationAppError
from ..ports.calendar_provider import CalendarProvider, ProviderFactory
from .token_vault import TokenVault

logger = logging.getLogger(__name__)


class CalendarClient:
    PAGE_SIZE = 250

    def __init__(self, vault: TokenVault, provider_factory: Optional[ProviderFactory] = None):
        self.vault = vault
        self.provider_factory = provider_factory or GoogleCalendarProvider

    def _provider(self, db: Session, credential: models.OAuthCredential) -> CalendarProvider:
        credential = self.vault.ensure_fresh(db, credential)
        return self.provider_factory(self.vault.access_token(credential))

    def list_event_page(
        self,
        db: Session,
        credential: models.OAuthCredential,
        calendar_id: Optional[str],
        window: SyncWindow,
    ) -> EventPage:
        """Fetch one bounded page; cancelled and all-day entries are counted, not returned."""
        if not isinstance(window, SyncWindow):
            raise ValidationAppError("WINDOW_INVALID", "a SyncWindow is required")
        provider = self._provider(db, credential)
        items = provider.list_events(
            calendar_id or credential.calendar_id,
            to_rfc3339(window.time_min),
            to_rfc3339(window.time_max),
            self.PAGE_SIZE,
        )
        page = EventPage()
        for item in items:
            if item.get("status") == "cancelled":
                page.cancelled += 1
                continue
            event = ExternalEvent.from_google(item)
            if event is None:
                page.untimed += 1
                continue
            page.events.append(event)
        page.events.sort(key=lambda e: e.start_at)
        return page

    def list_events(
        self,
        db: Session,
        credential: models.OAuthCredential,
        calendar_id: Optional[str],
        window: SyncWindow,
    ) -> List[ExternalEvent]:
        return self.list_event_page(db, credential, calendar_id, window).events

    def create_event(
        self,
        db: Session,
        credential: models.OAuthCredential,
        calendar_id: Optional[str],
        body: Dict[str, Any],
        notify_attendees: bool = False,
    ) -> Dict[str, Any]:
        provider = self._provider(db, credential)
        return provider.insert_event(calendar_id or credential.calendar_id, body, send_updates=notify_attendees)

    def update_event(
        self,
        db: Session,
        credential: models.OAuthCredential,
        calendar_id: Optional[str],
        body: Dict[str, Any],
        external_id: str,
        notify_attendees: bool = False,
    ) -> Dict[str, Any]:
        if not external_id:
            raise ValidationAppError("EXTERNAL_ID_REQUIRED", "update requires an external event id")
        provider = self._provider(db, credential)
        return provider.update_event(
            calendar_id or credential.calendar_id, external_id, body, send_updates=notify_attendees
        )

    def delete_event(
        self,
        db: Session,
        credential: models.OAuthCredential,
        calendar_id: Optional[str],
        external_id: str,
    ) -> bool:
        """Delete upstream. Returns False when the event was already gone (404/410)."""
        if not external_id:
            raise ValidationAppError("EXTERNAL_ID_REQUIRED", "delete requires an external event id")
        provider = self._provider(db, credential)
        try:
            provider.delete_event(calendar_id or credential.calendar_id, external_id)
        except NotFoundIgnorable as e:
            logger.info("External event %s already gone (status=%s)", external_id, e.provider_status)
            return False
        return True
