"""
Shared counter store layer.

- base.py: CounterStore protocol (read/write/delete/exists, optional increment)
- memory.py: thread-safe in-process store with per-key expiry
- redis_store.py: Redis store with atomic increment and connection pooling
- helpers.py: namespaced keys and failure-tolerant access used by guards

Key layout (namespace defaults to "llm_resilience"):
- Breaker counter: "{ns}:cb:count:{agent}:{model}" or "{ns}:cb:tenant:{tid}:count:{agent}:{model}"
- Breaker open marker: same with "open" instead of "count"
- Budget ledger: "{ns}:budget:{global|tenant:tid}[:agent:{agent}]:{date}"
"""

from llm_resilience.store.base import AtomicCounterStore, CounterStore, supports_increment
from llm_resilience.store.helpers import CounterStoreHelper
from llm_resilience.store.memory import InMemoryCounterStore
from llm_resilience.store.redis_store import RedisClient, RedisCounterStore

__all__ = [
    "CounterStore",
    "AtomicCounterStore",
    "supports_increment",
    "CounterStoreHelper",
    "InMemoryCounterStore",
    "RedisClient",
    "RedisCounterStore",
]
