"""Unit test fixtures (mocks and stubs).

Provides mock objects for testing without external dependencies.
"""

from types import SimpleNamespace
from typing import Any, Optional
from unittest.mock import MagicMock, Mock

import pytest


class PlainCounterStore:
    """Counter store without ``increment`` (exercises the read-modify-write path)."""

    def __init__(self):
        self.data: dict[str, Any] = {}
        self.expiries: dict[str, Optional[float]] = {}

    def read(self, key: str) -> Any:
        return self.data.get(key)

    def write(self, key: str, value: Any, expires_in: Optional[float] = None) -> bool:
        self.data[key] = value
        self.expiries[key] = expires_in
        return True

    def delete(self, key: str) -> bool:
        return self.data.pop(key, None) is not None

    def exists(self, key: str) -> bool:
        return key in self.data


class RecordingSink:
    """Notification sink that keeps every event."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def emit(self, event: str, payload) -> None:
        self.events.append((event, dict(payload)))


@pytest.fixture
def mock_redis():
    """Mock Redis client for unit tests (sync)."""
    mock = MagicMock()
    mock.get = Mock(return_value=None)
    mock.set = Mock(return_value=True)
    mock.delete = Mock(return_value=1)
    mock.exists = Mock(return_value=0)
    mock.smembers = Mock(return_value=set())
    return mock


@pytest.fixture
def failing_store():
    """Counter store whose every operation raises ConnectionError."""
    store = Mock()
    error = ConnectionError("store unavailable")
    store.read.side_effect = error
    store.write.side_effect = error
    store.delete.side_effect = error
    store.exists.side_effect = error
    store.increment.side_effect = error
    return store


@pytest.fixture
def plain_store() -> PlainCounterStore:
    return PlainCounterStore()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def llm_response():
    """Provider response exposing token usage attributes."""
    return SimpleNamespace(
        text='{"answer": "ok"}',
        input_tokens=120,
        output_tokens=45,
        cached_tokens=20,
        cache_creation_tokens=0,
        model_id="gpt-4o-2024-08-06",
    )
