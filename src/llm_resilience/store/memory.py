"""In-process counter store with per-key expiry."""

import threading
import time
from typing import Any, Callable, Optional


class InMemoryCounterStore:
    """
    Thread-safe dict-backed counter store.

    Suitable for single-process deployments and tests. State is lost on
    restart and is not shared between processes; use RedisCounterStore for that.

    Args:
        clock: Monotonic time source in seconds (injectable for tests)
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _expires_at(self, expires_in: Optional[float]) -> Optional[float]:
        if expires_in is None:
            return None
        return self._clock() + expires_in

    def _live_entry(self, key: str) -> Optional[tuple[Any, Optional[float]]]:
        # Caller must hold the lock
        entry = self._data.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return entry

    def read(self, key: str) -> Any:
        with self._lock:
            entry = self._live_entry(key)
            return None if entry is None else entry[0]

    def write(self, key: str, value: Any, expires_in: Optional[float] = None) -> bool:
        with self._lock:
            self._data[key] = (value, self._expires_at(expires_in))
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                return False
            del self._data[key]
            return True

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    def increment(self, key: str, by: float = 1, expires_in: Optional[float] = None) -> float:
        with self._lock:
            entry = self._live_entry(key)
            if entry is None:
                current, expires_at = 0, self._expires_at(expires_in)
            else:
                current, expires_at = entry
            new_value = float(current or 0) + by
            self._data[key] = (new_value, expires_at)
            return new_value

    def clear(self) -> None:
        """Drop every key. Intended for tests."""
        with self._lock:
            self._data.clear()
