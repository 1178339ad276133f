from datetime import timedelta

from roomcontrol.domain.models import StatusKey
from roomcontrol.domain.status import StatusCache


KEY = StatusKey("bath", "humidity", "dht")


def test_merge_then_get_returns_value(t0):
    cache = StatusCache()
    assert cache.merge(KEY, 63.5, t0) is True
    assert cache.get(KEY) == 63.5
    assert cache.since(KEY) == t0
    assert KEY in cache
    assert len(cache) == 1


def test_missing_key_returns_default():
    cache = StatusCache()
    assert cache.get(KEY) is None
    assert cache.get(KEY, "off") == "off"
    assert cache.get_entry(KEY) is None
    assert KEY not in cache


def test_same_value_keeps_since(t0):
    cache = StatusCache()
    cache.merge(KEY, "on", t0)
    assert cache.merge(KEY, "on", t0 + timedelta(seconds=30)) is False
    assert cache.since(KEY) == t0


def test_changed_value_moves_since(t0):
    cache = StatusCache()
    cache.merge(KEY, "on", t0)
    later = t0 + timedelta(seconds=30)
    assert cache.merge(KEY, "off", later) is True
    assert cache.since(KEY) == later


def test_since_never_moves_backwards(t0):
    cache = StatusCache()
    cache.merge(KEY, "on", t0)
    cache.merge(KEY, "off", t0 - timedelta(seconds=5))
    assert cache.get(KEY) == "off"
    assert cache.since(KEY) == t0


def test_attributes_are_separate_keys(t0):
    cache = StatusCache()
    cache.merge(StatusKey("bath", "fan", "fan", "speed"), "min", t0)
    cache.merge(StatusKey("bath", "fan", "fan", "control"), "auto", t0)
    assert cache.get(StatusKey("bath", "fan", "fan", "speed")) == "min"
    assert cache.get(StatusKey("bath", "fan", "fan")) is None


def test_snapshot_nests_by_room(t0):
    cache = StatusCache()
    cache.merge(KEY, 63.5, t0)
    cache.merge(StatusKey("bath", "fan", "fan", "speed"), "min", t0)
    cache.merge(StatusKey("hall", "light", "ceiling"), "on", t0)

    snap = cache.snapshot()
    assert set(snap) == {"bath", "hall"}
    assert snap["bath"]["humidity"]["dht"]["status"] == {"value": 63.5, "since": t0.isoformat()}

    bath = cache.snapshot("bath")
    assert set(bath) == {"humidity", "fan"}
    assert bath["fan"]["fan"]["speed"]["value"] == "min"
