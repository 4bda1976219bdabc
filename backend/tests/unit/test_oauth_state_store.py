from callsync.services.state_store import MemoryStateStore


class Clock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_pop_returns_binding_once():
    store = MemoryStateStore(ttl_seconds=600, max_entries=10, time_provider=Clock())
    store.put("s1", "u1", "verifier-1", 1000.0)

    assert store.pop("s1") == {"user_id": "u1", "code_verifier": "verifier-1", "created_at": 1000.0}
    assert store.pop("s1") is None


def test_expired_state_is_dropped():
    clock = Clock()
    store = MemoryStateStore(ttl_seconds=600, max_entries=10, time_provider=clock)
    store.put("s1", "u1", "v", clock.now)

    clock.now += 601

    assert store.pop("s1") is None
    assert store.size() == 0


def test_oldest_state_is_evicted_over_capacity():
    clock = Clock()
    store = MemoryStateStore(ttl_seconds=600, max_entries=2, time_provider=clock)
    store.put("s1", "u1", "v1", 1000.0)
    store.put("s2", "u1", "v2", 1001.0)
    store.put("s3", "u2", "v3", 1002.0)

    assert store.size() == 2
    assert store.pop("s1") is None
    assert store.pop("s3")["user_id"] == "u2"
