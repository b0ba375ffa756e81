"""
Circuit breaker.

Opens after ``errors`` failures within ``within`` seconds and closes on its
own after ``cooldown`` seconds. State lives in the shared counter store, so
every process pointed at the same store sees the same breaker.
"""

from llm_resilience.breaker.circuit_breaker import CircuitBreaker
from llm_resilience.breaker.state import CircuitBreakerConfig, CircuitState

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
]
