import pytest

from services.solutions import CacheStatistics


def test_hit_rate_without_lookups_is_zero():
    assert CacheStatistics().hit_rate_percent == 0.0


def test_hit_rate_counts_refreshes_as_lookups():
    stats = CacheStatistics()
    for op in ("hit", "hit", "miss", "refresh", "cleanup"):
        stats.track(op)

    assert stats.count("hit") == 2
    assert stats.hit_rate_percent == 50.0


def test_snapshot_lists_every_operation():
    stats = CacheStatistics()
    stats.track("miss", "p0171-vw-golf-2019")

    snapshot = stats.snapshot()

    assert snapshot["operations"]["miss"] == 1
    assert snapshot["operations"]["storage_error"] == 0
    assert snapshot["hitRatePercent"] == 0.0


def test_reset():
    stats = CacheStatistics()
    stats.track("hit")
    stats.reset()

    assert stats.count("hit") == 0


def test_unknown_operation_rejected():
    with pytest.raises(ValueError):
        CacheStatistics().track("evicted")


def test_expired_lookup_lowers_hit_rate():
    stats = CacheStatistics()
    for op in ("hit", "expired"):
        stats.track(op)

    assert stats.count("expired") == 1
    assert stats.hit_rate_percent == 50.0
    assert stats.snapshot()["operations"]["expired"] == 1
