"""
Retry and backoff policy for LLM provider calls.

Errors fall into three groups:
    1. Retryable: transient transport/provider failures, matched by type or
       by message pattern. Retry the same model after a backoff delay.
    2. Non-fallback: programming errors in the caller's code. Re-raise
       immediately; another model would fail the same way.
    3. Everything else: give up on this model and fall back to the next one.

Classification helpers never raise. A failure inside classification is
logged and reported as "not in this group".
"""

import random
import re
from enum import Enum
from typing import Iterable, Optional, Pattern, Sequence, Tuple, Type, Union

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from llm_resilience.exceptions import (
    ProviderConnectionError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)

logger = structlog.get_logger(__name__)

ErrorTypes = Tuple[Type[BaseException], ...]
MessagePattern = Union[str, Pattern[str]]


DEFAULT_RETRYABLE_ERRORS: ErrorTypes = (
    TimeoutError,
    ConnectionRefusedError,
    ConnectionResetError,
    ConnectionAbortedError,
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    ProviderTimeoutError,
    ProviderConnectionError,
    ProviderRateLimitError,
    ProviderOverloadedError,
)

DEFAULT_RETRYABLE_PATTERNS: Tuple[MessagePattern, ...] = (
    "rate limit",
    "rate_limit",
    "too many requests",
    "429",
    "500",
    "502",
    "503",
    "504",
    "service unavailable",
    "internal server error",
    "bad gateway",
    "gateway timeout",
    "overloaded",
    "capacity",
    "quota exceeded",
    re.compile(r"exceeded.*quota", re.IGNORECASE),
)

# ValueError is left out on purpose: JSON decoding and schema errors from a
# provider response are ValueErrors and should fall back to another model.
NON_FALLBACK_ERRORS: ErrorTypes = (
    TypeError,
    NameError,
    AttributeError,
    NotImplementedError,
)


class BackoffStrategy(str, Enum):
    EXPONENTIAL = "exponential"
    CONSTANT = "constant"


class BackoffSpec(BaseModel):
    """
    Backoff delay parameters.

    Attributes:
        strategy: exponential or constant
        base: Base delay in seconds
        max_delay: Cap applied to the exponential delay before jitter
    """
    model_config = ConfigDict(frozen=True)

    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=60.0, ge=0)


def _matches(pattern: MessagePattern, message: str) -> bool:
    if isinstance(pattern, str):
        return pattern.lower() in message.lower()
    return pattern.search(message) is not None


def retryable_by_message(
    error: BaseException,
    custom_patterns: Optional[Iterable[MessagePattern]] = None,
) -> bool:
    """
    Check the error message against known transient-failure patterns.

    Args:
        error: Raised exception
        custom_patterns: Extra substrings or compiled regexes (added to the defaults)

    Returns:
        True if any pattern matches (substring match is case-insensitive)
    """
    try:
        message = str(error)
        if not message:
            return False
        patterns = list(DEFAULT_RETRYABLE_PATTERNS)
        if custom_patterns:
            patterns.extend(custom_patterns)
        return any(_matches(pattern, message) for pattern in patterns)
    except Exception as e:
        logger.warning("Retryable message check failed", error_type=type(e).__name__, error=str(e))
        return False


def retryable_error(
    error: BaseException,
    custom_errors: Sequence[Type[BaseException]] = (),
    custom_patterns: Optional[Iterable[MessagePattern]] = None,
) -> bool:
    """True if ``error`` is a transient failure worth retrying on the same model."""
    try:
        if isinstance(error, DEFAULT_RETRYABLE_ERRORS + tuple(custom_errors)):
            return True
        return retryable_by_message(error, custom_patterns)
    except Exception as e:
        logger.warning("Retryable error check failed", error_type=type(e).__name__, error=str(e))
        return False


def non_fallback_error(
    error: BaseException,
    custom_errors: Sequence[Type[BaseException]] = (),
) -> bool:
    """True if ``error`` is a caller bug that must propagate without fallback."""
    try:
        return isinstance(error, NON_FALLBACK_ERRORS + tuple(custom_errors))
    except Exception as e:
        logger.warning("Non-fallback error check failed", error_type=type(e).__name__, error=str(e))
        return False


def calculate_backoff(
    strategy: Union[BackoffStrategy, str],
    base: float,
    max_delay: float,
    attempt: int,
) -> float:
    """
    Delay in seconds before retry number ``attempt`` (the executor passes 1 for
    the first retry).

    Exponential delays double per attempt up to ``max_delay``; constant
    delays stay at ``base``. Up to 50% random jitter is added on top.

    Raises:
        ValueError: Unknown strategy
    """
    strategy = BackoffStrategy(strategy)
    if strategy == BackoffStrategy.EXPONENTIAL:
        capped = min(base * (2 ** attempt), max_delay)
    else:
        capped = base
    return capped + random.uniform(0, capped * 0.5)


class RetryStrategy:
    """
    Retry budget and backoff for one executor.

    Attributes:
        max_retries: Retries per model after the first attempt
        backoff: Delay parameters
        custom_errors: Extra exception types treated as retryable
        custom_patterns: Extra message patterns treated as retryable
    """

    def __init__(
        self,
        max_retries: int = 2,
        backoff: Optional[BackoffSpec] = None,
        custom_errors: Sequence[Type[BaseException]] = (),
        custom_patterns: Optional[Sequence[MessagePattern]] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.backoff = backoff or BackoffSpec()
        self.custom_errors = tuple(custom_errors)
        self.custom_patterns = tuple(custom_patterns or ())

    def should_retry(self, attempt_index: int) -> bool:
        """True if the attempt at ``attempt_index`` (0-based) may be followed by a retry."""
        return attempt_index < self.max_retries

    def delay_for(self, attempt_index: int) -> float:
        """Backoff before retry number ``attempt_index`` (1 for the first retry)."""
        return calculate_backoff(
            self.backoff.strategy, self.backoff.base, self.backoff.max_delay, attempt_index
        )

    def retryable(self, error: BaseException) -> bool:
        return retryable_error(error, self.custom_errors, self.custom_patterns)

    def retryable_errors(self) -> ErrorTypes:
        """Every exception type treated as retryable (defaults plus custom)."""
        return DEFAULT_RETRYABLE_ERRORS + self.custom_errors

    def __repr__(self) -> str:
        return (
            f"RetryStrategy(max_retries={self.max_retries}, "
            f"strategy={self.backoff.strategy.value}, base={self.backoff.base}, "
            f"max_delay={self.backoff.max_delay})"
        )
