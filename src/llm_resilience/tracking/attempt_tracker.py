"""
Per-request attempt log.

One AttemptTracker belongs to one logical request. It records every provider
call (and every model skipped by an open breaker) in order, so the caller can
report token totals, latency and which model finally served the request.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from llm_resilience.exceptions import CircuitOpenError
from llm_resilience.tracking.notifications import (
    ATTEMPT_FINISH,
    ATTEMPT_START,
    LoggingNotificationSink,
    NotificationSink,
)

logger = structlog.get_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000

SHORT_CIRCUIT_ERROR_CLASS = CircuitOpenError.__name__
SHORT_CIRCUIT_ERROR_MESSAGE = "Circuit breaker is open"


class Attempt(BaseModel):
    """
    One finished provider call, or one model skipped by an open breaker.

    Attributes:
        model_id: Model the attempt was made against
        started_at: Monotonic clock reading at start (seconds)
        duration_ms: Wall time of the call (0 for short circuits)
        success: Whether the call returned a response
        input_tokens / output_tokens / cached_tokens / cache_creation_tokens:
            Usage reported by the response (0 when unavailable)
        error_class: Exception class name for failed attempts (CircuitOpenError for short circuits)
        error_message: Exception message, truncated to 1000 characters
        short_circuited: True when the breaker skipped this model
        served_model_id: Model the provider reports having served, if different
    """
    model_config = ConfigDict(frozen=True)

    model_id: str
    started_at: float
    duration_ms: float = Field(default=0.0, ge=0)
    success: bool = False
    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
    cache_creation_tokens: int = 0
    error_class: Optional[str] = None
    error_message: Optional[str] = None
    short_circuited: bool = False
    served_model_id: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class AttemptHandle:
    """Open attempt returned by start_attempt; pass it back to complete_attempt."""

    index: int
    model_id: str
    started_at: float
    completed: bool = False


def _usage(response: Any, name: str) -> int:
    return int(getattr(response, name, 0) or 0)


class AttemptTracker:
    """
    Ordered, append-only log of attempts for one request.

    Usage:
        tracker = AttemptTracker()
        handle = tracker.start_attempt("gpt-4o")
        try:
            response = call_provider()
        except Exception as e:
            tracker.complete_attempt(handle, success=False, error=e)
            raise
        tracker.complete_attempt(handle, success=True, response=response)

    Sink failures are logged and never interrupt the request.
    """

    def __init__(
        self,
        sink: Optional[NotificationSink] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sink: NotificationSink = sink or LoggingNotificationSink()
        self._clock = clock
        self._attempts: List[Attempt] = []
        self._started = 0

    # === Recording ===

    def start_attempt(self, model_id: str) -> AttemptHandle:
        handle = AttemptHandle(index=self._started, model_id=model_id, started_at=self._clock())
        self._started += 1
        self._emit(ATTEMPT_START, {"model_id": model_id, "attempt_index": handle.index})
        return handle

    def complete_attempt(
        self,
        handle: AttemptHandle,
        success: bool,
        response: Any = None,
        error: Optional[BaseException] = None,
    ) -> Attempt:
        """
        Close an attempt and append it to the log.

        Args:
            handle: Value returned by start_attempt
            success: Whether the call returned a usable response
            response: Provider response exposing token usage attributes
            error: Exception raised by a failed call

        Returns:
            Recorded Attempt

        Raises:
            ValueError: The handle was already completed
        """
        if handle.completed:
            raise ValueError(f"Attempt {handle.index} for {handle.model_id} already completed")
        handle.completed = True

        duration_ms = max((self._clock() - handle.started_at) * 1000, 0.0)
        error_message = None
        if error is not None:
            error_message = str(error)[:MAX_ERROR_MESSAGE_LENGTH]

        attempt = Attempt(
            model_id=handle.model_id,
            started_at=handle.started_at,
            duration_ms=duration_ms,
            success=success,
            input_tokens=_usage(response, "input_tokens"),
            output_tokens=_usage(response, "output_tokens"),
            cached_tokens=_usage(response, "cached_tokens"),
            cache_creation_tokens=_usage(response, "cache_creation_tokens"),
            error_class=type(error).__name__ if error is not None else None,
            error_message=error_message,
            served_model_id=getattr(response, "model_id", None) if response is not None else None,
        )
        self._attempts.append(attempt)

        payload: Dict[str, Any] = {
            "model_id": attempt.model_id,
            "success": attempt.success,
            "duration_ms": attempt.duration_ms,
            "input_tokens": attempt.input_tokens,
            "output_tokens": attempt.output_tokens,
        }
        if error is not None:
            payload["error_class"] = attempt.error_class
            payload["error_message"] = attempt.error_message
        self._emit(ATTEMPT_FINISH, payload)

        return attempt

    def record_short_circuit(self, model_id: str) -> Attempt:
        """Log a model skipped by an open breaker (no notifications are emitted)."""
        attempt = Attempt(
            model_id=model_id,
            started_at=self._clock(),
            success=False,
            error_class=SHORT_CIRCUIT_ERROR_CLASS,
            error_message=SHORT_CIRCUIT_ERROR_MESSAGE,
            short_circuited=True,
        )
        self._attempts.append(attempt)
        return attempt

    def _emit(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            self.sink.emit(event, payload)
        except Exception as e:
            logger.warning(
                "Notification sink failed",
                event_name=event,
                sink=type(self.sink).__name__,
                error_type=type(e).__name__,
                error=str(e),
            )

    # === Accessors ===

    @property
    def attempts(self) -> List[Attempt]:
        return list(self._attempts)

    @property
    def total_input_tokens(self) -> int:
        return sum(a.input_tokens for a in self._attempts)

    @property
    def total_output_tokens(self) -> int:
        return sum(a.output_tokens for a in self._attempts)

    @property
    def total_cached_tokens(self) -> int:
        return sum(a.cached_tokens for a in self._attempts)

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    @property
    def total_duration_ms(self) -> float:
        return sum(a.duration_ms for a in self._attempts)

    @property
    def successful_attempt(self) -> Optional[Attempt]:
        for attempt in self._attempts:
            if attempt.success:
                return attempt
        return None

    @property
    def last_failed_attempt(self) -> Optional[Attempt]:
        for attempt in reversed(self._attempts):
            if attempt.error_class is not None:
                return attempt
        return None

    @property
    def chosen_model_id(self) -> Optional[str]:
        """Model that served the request (provider-reported id preferred)."""
        attempt = self.successful_attempt
        if attempt is None:
            return None
        return attempt.served_model_id or attempt.model_id

    @property
    def attempts_count(self) -> int:
        return len(self._attempts)

    @property
    def failed_attempts_count(self) -> int:
        return sum(1 for a in self._attempts if a.error_class is not None)

    @property
    def short_circuited_count(self) -> int:
        return sum(1 for a in self._attempts if a.short_circuited)

    def to_json_array(self) -> List[Dict[str, Any]]:
        """Attempts as JSON-ready dicts, in order."""
        return [attempt.model_dump(mode="json") for attempt in self._attempts]
