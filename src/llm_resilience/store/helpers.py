"""
Shared counter-store access for the breaker and budget tracker.

Provides namespaced key generation and guarded store operations: a failing
store is logged and counted, then treated as "no data", so guards built on
top of it stay permissive instead of aborting the request.
"""

from typing import Any, Callable, ClassVar, Optional, TypeVar

import structlog

from llm_resilience.monitoring.metrics import counter_store_errors_total
from llm_resilience.store.base import CounterStore, supports_increment

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CounterStoreHelper:
    """
    Namespaced, failure-tolerant wrapper around a CounterStore.

    Attributes:
        store: Underlying counter store
        namespace: Prefix for every key this helper generates
    """

    DEFAULT_NAMESPACE = "llm_resilience"

    # Process-wide: the non-atomic fallback warning is logged once
    _race_warning_logged: ClassVar[bool] = False

    def __init__(self, store: CounterStore, namespace: str = DEFAULT_NAMESPACE):
        self.store = store
        self.namespace = namespace

    def key(self, *parts: Any) -> str:
        """
        Build a namespaced key.

        Example:
            >>> CounterStoreHelper(store).key("budget", "global", "2026-01-01")
            'llm_resilience:budget:global:2026-01-01'
        """
        return ":".join([self.namespace, *(str(part) for part in parts)])

    def _guard(self, operation: str, key: str, func: Callable[[], T], default: T) -> T:
        try:
            return func()
        except Exception as exc:
            counter_store_errors_total.labels(operation=operation).inc()
            logger.warning(
                "Counter store operation failed, proceeding permissively",
                operation=operation,
                key=key,
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=True,
            )
            return default

    def read(self, key: str) -> Any:
        """Read ``key``; None when absent or on store failure."""
        return self._guard("read", key, lambda: self.store.read(key), None)

    def read_number(self, key: str) -> float:
        """Read ``key`` as a float; 0.0 when absent, unparseable or on store failure."""
        value = self.read(key)
        if value is None:
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning("Counter store value is not numeric", key=key, value=repr(value))
            return 0.0

    def write(self, key: str, value: Any, expires_in: Optional[float] = None) -> bool:
        return self._guard(
            "write", key, lambda: bool(self.store.write(key, value, expires_in=expires_in)), False
        )

    def delete(self, key: str) -> bool:
        return self._guard("delete", key, lambda: bool(self.store.delete(key)), False)

    def exists(self, key: str) -> bool:
        return self._guard("exists", key, lambda: bool(self.store.exists(key)), False)

    def increment(self, key: str, by: float = 1, expires_in: Optional[float] = None) -> Optional[float]:
        """
        Add ``by`` to ``key`` and return the new value (None on store failure).

        Uses the store's atomic ``increment`` when it has one. Otherwise falls
        back to read-modify-write, which loses updates when several writers
        hit the same key concurrently. Deployments with concurrent writers
        need a store with atomic increment (RedisCounterStore,
        InMemoryCounterStore).

        Note: the fallback rewrites the expiry on every increment, so with
        such stores the window slides from the latest write instead of the
        first one.
        """
        if supports_increment(self.store):
            return self._guard(
                "increment",
                key,
                lambda: float(self.store.increment(key, by, expires_in=expires_in)),
                None,
            )

        self._warn_non_atomic_once()

        def _read_modify_write() -> float:
            current = self.store.read(key)
            new_value = float(current or 0) + by
            self.store.write(key, new_value, expires_in=expires_in)
            return new_value

        return self._guard("increment", key, _read_modify_write, None)

    def _warn_non_atomic_once(self) -> None:
        cls = type(self)
        if cls._race_warning_logged:
            return
        cls._race_warning_logged = True
        logger.warning(
            "Counter store has no atomic increment; using read-modify-write "
            "(concurrent updates to the same key can be lost)",
            store=type(self.store).__name__,
        )
