"""Retry/backoff policy and the reliability executor."""

from llm_resilience.retry.executor import ReliabilityExecutor
from llm_resilience.retry.policy import (
    DEFAULT_RETRYABLE_ERRORS,
    DEFAULT_RETRYABLE_PATTERNS,
    BackoffSpec,
    BackoffStrategy,
    RetryStrategy,
    calculate_backoff,
    non_fallback_error,
    retryable_by_message,
    retryable_error,
)

__all__ = [
    "DEFAULT_RETRYABLE_ERRORS",
    "DEFAULT_RETRYABLE_PATTERNS",
    "BackoffSpec",
    "BackoffStrategy",
    "ReliabilityExecutor",
    "RetryStrategy",
    "calculate_backoff",
    "non_fallback_error",
    "retryable_by_message",
    "retryable_error",
]
