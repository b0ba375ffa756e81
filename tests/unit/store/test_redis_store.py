"""
Unit tests for the Redis counter store and connection pooling.
"""

import pytest
from unittest.mock import MagicMock, patch

from llm_resilience.config import Settings
from llm_resilience.store.redis_store import RedisClient, RedisCounterStore


@pytest.fixture
def mock_settings():
    """Mock settings for testing."""
    settings = MagicMock(spec=Settings)
    settings.REDIS_URL = "redis://localhost:6379/0"
    settings.REDIS_MAX_CONNECTIONS = 50
    settings.REDIS_SOCKET_TIMEOUT = 2.0
    return settings


@pytest.fixture(autouse=True)
def reset_pool():
    """Reset connection pool before each test."""
    RedisClient._pool = None
    yield
    RedisClient._pool = None


def test_get_client_creates_pool_once(mock_settings):
    with patch("llm_resilience.store.redis_store.ConnectionPool") as mock_pool, \
            patch("llm_resilience.store.redis_store.Redis") as mock_redis_cls:
        mock_pool.from_url.return_value = MagicMock()

        RedisClient.get_client(mock_settings)
        RedisClient.get_client(mock_settings)

        mock_pool.from_url.assert_called_once_with(
            mock_settings.REDIS_URL,
            max_connections=mock_settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True,
            socket_timeout=2.0,
            socket_connect_timeout=2.0,
            retry_on_timeout=True,
        )
        assert mock_redis_cls.call_count == 2
        mock_redis_cls.assert_called_with(connection_pool=mock_pool.from_url.return_value)


def test_close_pool():
    mock_pool = MagicMock()
    RedisClient._pool = mock_pool

    RedisClient.close_pool()

    mock_pool.disconnect.assert_called_once()
    assert RedisClient._pool is None


def test_close_pool_without_pool_is_noop():
    RedisClient.close_pool()
    assert RedisClient._pool is None


def test_from_settings_uses_shared_pool(mock_settings):
    with patch.object(RedisClient, "get_client") as mock_get_client:
        store = RedisCounterStore.from_settings(mock_settings)

    mock_get_client.assert_called_once_with(mock_settings)
    assert store.redis is mock_get_client.return_value


def test_read_returns_raw_value(mock_redis):
    mock_redis.get.return_value = "4.5"
    store = RedisCounterStore(mock_redis)

    assert store.read("k") == "4.5"
    mock_redis.get.assert_called_once_with("k")


def test_write_rounds_expiry_up_to_whole_seconds(mock_redis):
    store = RedisCounterStore(mock_redis)

    assert store.write("k", 1700000000.0, expires_in=1.2) is True
    mock_redis.set.assert_called_once_with("k", 1700000000.0, ex=2)


def test_write_sub_second_expiry_uses_minimum(mock_redis):
    store = RedisCounterStore(mock_redis)

    store.write("k", 1, expires_in=0.01)
    mock_redis.set.assert_called_once_with("k", 1, ex=1)


def test_write_without_expiry(mock_redis):
    store = RedisCounterStore(mock_redis)

    store.write("k", "v")
    mock_redis.set.assert_called_once_with("k", "v", ex=None)


def test_delete_and_exists_convert_counts(mock_redis):
    store = RedisCounterStore(mock_redis)

    mock_redis.delete.return_value = 0
    mock_redis.exists.return_value = 1

    assert store.delete("k") is False
    assert store.exists("k") is True


def test_increment_sets_expiry_only_on_creation(mock_redis):
    pipe = MagicMock()
    pipe.execute.return_value = [True, "3.5"]
    mock_redis.pipeline.return_value = pipe
    store = RedisCounterStore(mock_redis)

    assert store.increment("count", 1.5, expires_in=60) == 3.5

    mock_redis.pipeline.assert_called_once_with(transaction=True)
    pipe.set.assert_called_once_with("count", 0, ex=60, nx=True)
    pipe.incrbyfloat.assert_called_once_with("count", 1.5)


def test_increment_without_expiry_skips_set(mock_redis):
    pipe = MagicMock()
    pipe.execute.return_value = ["1"]
    mock_redis.pipeline.return_value = pipe
    store = RedisCounterStore(mock_redis)

    assert store.increment("count") == 1.0
    pipe.set.assert_not_called()
