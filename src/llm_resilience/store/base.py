"""
Counter store contract.

The breaker and budget tracker keep no state of their own; every read and
write goes through a store implementing this protocol. ``increment`` is
optional: stores that do not provide it get a read-modify-write fallback
(see CounterStoreHelper.increment).
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class CounterStore(Protocol):
    """Key/value store with per-key expiry."""

    def read(self, key: str) -> Any:
        """Return the stored value, or None when absent or expired."""
        ...

    def write(self, key: str, value: Any, expires_in: Optional[float] = None) -> bool:
        """Store ``value`` under ``key``, optionally expiring after ``expires_in`` seconds."""
        ...

    def delete(self, key: str) -> bool:
        """Delete ``key``; return True if something was removed."""
        ...

    def exists(self, key: str) -> bool:
        """Return True if ``key`` is present and not expired."""
        ...


@runtime_checkable
class AtomicCounterStore(CounterStore, Protocol):
    """Counter store that can increment atomically."""

    def increment(self, key: str, by: float = 1, expires_in: Optional[float] = None) -> float:
        """
        Atomically add ``by`` to ``key`` and return the new value.

        A missing key starts at 0 and receives ``expires_in`` as its expiry.
        An existing key keeps its original expiry.
        """
        ...


def supports_increment(store: Any) -> bool:
    """Return True if ``store`` exposes a callable ``increment``."""
    return callable(getattr(store, "increment", None))
