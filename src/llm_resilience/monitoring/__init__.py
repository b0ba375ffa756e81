"""Prometheus metrics for breakers, budgets, attempts and the counter store."""

from llm_resilience.monitoring.metrics import (
    attempt_latency_seconds,
    attempt_tokens_total,
    attempts_total,
    budget_exceeded_total,
    budget_spend_total,
    circuit_breaker_opened_total,
    circuit_breaker_short_circuits_total,
    counter_store_errors_total,
)

__all__ = [
    "circuit_breaker_opened_total",
    "circuit_breaker_short_circuits_total",
    "budget_spend_total",
    "budget_exceeded_total",
    "attempts_total",
    "attempt_latency_seconds",
    "attempt_tokens_total",
    "counter_store_errors_total",
]
