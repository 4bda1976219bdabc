"""Adapter tests against a mocked discovery client."""
from unittest.mock import Mock, patch

import pytest
from googleapiclient.errors import HttpError

from callsync.adapters.google_calendar_provider import GoogleCalendarProvider
from callsync.errors import NotFoundIgnorable, ProviderError


@pytest.fixture
def service():
    with patch('callsync.adapters.google_calendar_provider.build') as mock_build:
        svc = Mock()
        mock_build.return_value = svc
        yield svc


def http_error(status):
    return HttpError(Mock(status=status, reason="err"), b"{}")


def test_update_patches_so_guests_survive(service):
    service.events().patch().execute.return_value = {"id": "gevt_1"}
    body = {"summary": "Chat", "start": {"dateTime": "2026-10-20T15:00:00+00:00", "timeZone": "UTC"}}

    res = GoogleCalendarProvider("token").update_event("primary", "gevt_1", body)

    assert res == {"id": "gevt_1"}
    service.events().patch.assert_called_with(
        calendarId="primary", eventId="gevt_1", body=body, sendUpdates=None
    )
    service.events().update.assert_not_called()


def test_list_requests_single_ordered_instances(service):
    service.events().list().execute.return_value = {"items": [{"id": "e1"}]}

    items = GoogleCalendarProvider("token").list_events("primary", "a", "b", 250)

    assert items == [{"id": "e1"}]
    service.events().list.assert_called_with(
        calendarId="primary", timeMin="a", timeMax="b", maxResults=250, singleEvents=True, orderBy="startTime"
    )


@pytest.mark.parametrize("status", [404, 410])
def test_delete_of_missing_event_is_ignorable(service, status):
    service.events().delete().execute.side_effect = http_error(status)

    with pytest.raises(NotFoundIgnorable):
        GoogleCalendarProvider("token").delete_event("primary", "gone")


def test_insert_failure_carries_status(service):
    service.events().insert().execute.side_effect = http_error(429)

    with pytest.raises(ProviderError) as exc:
        GoogleCalendarProvider("token").insert_event("primary", {}, send_updates=True)
    assert exc.value.provider_status == 429
    assert exc.value.retryable is True
