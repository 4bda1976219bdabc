from __future__ import annotations
import logging
from typing import Dict, Any, List
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from google.oauth2.credentials import Credentials

from ..errors import ProviderError, NotFoundIgnorable
from ..ports.calendar_provider import CalendarProvider

logger = logging.getLogger(__name__)


def _status_of(e: HttpError) -> int:
    try:
        return int(e.resp.status)
    except (AttributeError, TypeError, ValueError):
        return 500


class GoogleCalendarProvider(CalendarProvider):
    def __init__(self, access_token: str):
        credentials = Credentials(token=access_token)
        self._service = build('calendar', 'v3', credentials=credentials, cache_discovery=False)

    def list_events(
        self,
        calendar_id: str,
        time_min_iso: str,
        time_max_iso: str,
        max_results: int,
    ) -> List[Dict[str, Any]]:
        req = self._service.events().list(
            calendarId=calendar_id,
            timeMin=time_min_iso,
            timeMax=time_max_iso,
            maxResults=max_results,
            singleEvents=True,
            orderBy='startTime',
        )
        try:
            res = req.execute()
        except HttpError as e:
            logger.warning("Google events.list failed: status=%s", _status_of(e))
            raise ProviderError(_status_of(e), "Failed to fetch Google Calendar events")
        return res.get('items', [])

    def insert_event(self, calendar_id: str, body: Dict[str, Any], send_updates: bool = False) -> Dict[str, Any]:
        try:
            return self._service.events().insert(
                calendarId=calendar_id,
                body=body,
                sendUpdates='all' if send_updates else None,
            ).execute()
        except HttpError as e:
            logger.warning("Google events.insert failed: status=%s", _status_of(e))
            raise ProviderError(_status_of(e), "Failed to create Google Calendar event")

    def update_event(
        self, calendar_id: str, event_id: str, body: Dict[str, Any], send_updates: bool = False
    ) -> Dict[str, Any]:
        """Patch semantics: fields absent from body (e.g. attendees) keep their upstream values."""
        try:
            return self._service.events().patch(
                calendarId=calendar_id,
                eventId=event_id,
                body=body,
                sendUpdates='all' if send_updates else None,
            ).execute()
        except HttpError as e:
            logger.warning("Google events.patch failed: status=%s", _status_of(e))
            raise ProviderError(_status_of(e), "Failed to update Google Calendar event")

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        try:
            self._service.events().delete(calendarId=calendar_id, eventId=event_id).execute()
        except HttpError as e:
            status = _status_of(e)
            if status in (404, 410):
                raise NotFoundIgnorable(status)
            logger.warning("Google events.delete failed: status=%s", status)
            raise ProviderError(status, "Failed to delete Google Calendar event")
