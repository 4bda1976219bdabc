"""Prometheus collectors for the calendar integration (registered once per process)."""
from prometheus_client import Counter, Histogram

SYNC_PASS_COUNT = Counter(
    "callsync_sync_pass_total", "Calendar sync passes", ["outcome"]
)
SYNC_PASS_DURATION = Histogram(
    "callsync_sync_pass_duration_seconds", "Latency of one calendar sync pass"
)
SYNC_EVENT_COUNT = Counter(
    "callsync_sync_events_total", "Events seen by sync passes", ["result"]
)
PUSH_COUNT = Counter(
    "callsync_push_total", "Call record pushes to the external calendar", ["action", "outcome"]
)
TOKEN_REFRESH_COUNT = Counter(
    "callsync_token_refresh_total", "OAuth refresh-token grants", ["outcome"]
)
OAUTH_EXCHANGE_COUNT = Counter(
    "callsync_oauth_exchange_total", "OAuth code exchange attempts", ["outcome"]
)
OAUTH_EXCHANGE_LATENCY = Histogram(
    "callsync_oauth_exchange_duration_seconds", "OAuth code exchange latency"
)
CONFIRM_COUNT = Counter(
    "callsync_confirm_contacts_total", "Pending attendee confirmations", ["outcome"]
)
