from unittest.mock import MagicMock

from app import rate_limiter
from app.rate_limiter import check_rate_limit, get_redis_client


def test_memory_only_limit():
    results = [check_rate_limit("test:memory", limit=3, window_seconds=60) for _ in range(4)]

    assert [allowed for allowed, _, _ in results] == [True, True, True, False]
    assert results[-1][1] == 3
    assert 0 < results[-1][2] <= 60


def test_window_reset(monkeypatch):
    now = [1_000_000.0]
    monkeypatch.setattr(rate_limiter.time, "time", lambda: now[0])

    assert check_rate_limit("test:window", limit=1, window_seconds=10)[0]
    assert not check_rate_limit("test:window", limit=1, window_seconds=10)[0]

    now[0] += 11
    assert check_rate_limit("test:window", limit=1, window_seconds=10)[0]


def test_counter_is_seeded_from_redis():
    client = MagicMock()
    client.get.return_value = "4"
    client.ttl.return_value = 30

    allowed, count, ttl = check_rate_limit("test:redis", limit=5, window_seconds=60, client=client)

    assert allowed
    assert count == 5
    assert ttl == 30
    assert not check_rate_limit("test:redis", limit=5, window_seconds=60, client=client)[0]


def test_counter_is_synced_to_redis_periodically(monkeypatch):
    now = [1_000_000.0]
    monkeypatch.setattr(rate_limiter.time, "time", lambda: now[0])
    client = MagicMock()
    client.get.return_value = None

    check_rate_limit("test:sync", limit=10, window_seconds=60, client=client)
    client.set.assert_not_called()

    now[0] += rate_limiter.MEMORY_CACHE_SYNC_INTERVAL
    check_rate_limit("test:sync", limit=10, window_seconds=60, client=client)
    client.set.assert_called_once_with("test:sync", 2, ex=50)


def test_redis_errors_fall_back_to_memory():
    client = MagicMock()
    client.get.side_effect = ConnectionError("redis down")
    client.set.side_effect = ConnectionError("redis down")

    allowed, count, _ = check_rate_limit("test:broken", limit=2, window_seconds=60, client=client)

    assert allowed
    assert count == 1


def test_no_redis_configured(monkeypatch):
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("REDIS_HOST", raising=False)
    monkeypatch.setattr(rate_limiter, "redis_client", None)

    assert get_redis_client() is None
