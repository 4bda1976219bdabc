from __future__ import annotations
from typing import Protocol, Dict, Any, List, Optional


class CalendarProvider(Protocol):
    """Abstracts external calendar operations for testability.

    Implementations raise ProviderError for upstream failures and
    NotFoundIgnorable when a delete targets an event that is already gone.
    """

    def list_events(
        self,
        calendar_id: str,
        time_min_iso: str,
        time_max_iso: str,
        max_results: int,
    ) -> List[Dict[str, Any]]:
        """Return raw event resources, single instances ordered by start."""
        ...

    def insert_event(self, calendar_id: str, body: Dict[str, Any], send_updates: bool = False) -> Dict[str, Any]:
        ...

    def update_event(
        self, calendar_id: str, event_id: str, body: Dict[str, Any], send_updates: bool = False
    ) -> Dict[str, Any]:
        """Partial update; keys missing from body are left as they are upstream."""
        ...

    def delete_event(self, calendar_id: str, event_id: str) -> None:
        ...


class ProviderFactory(Protocol):
    def __call__(self, access_token: str) -> CalendarProvider: ...
