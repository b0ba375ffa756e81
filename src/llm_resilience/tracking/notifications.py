"""
Attempt lifecycle notifications.

AttemptTracker emits two events per provider call:
- ``attempt.start``: {model_id, attempt_index}
- ``attempt.finish``: {model_id, success, duration_ms, input_tokens,
  output_tokens, [error_class, error_message]}
"""

from typing import Any, Mapping, Protocol

import structlog

from llm_resilience.monitoring.metrics import (
    attempt_latency_seconds,
    attempt_tokens_total,
    attempts_total,
)

logger = structlog.get_logger(__name__)

ATTEMPT_START = "attempt.start"
ATTEMPT_FINISH = "attempt.finish"


class NotificationSink(Protocol):
    """Receiver for attempt lifecycle events."""

    def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        ...


class LoggingNotificationSink:
    """Default sink: structured log entry per event plus Prometheus metrics on finish."""

    def emit(self, event: str, payload: Mapping[str, Any]) -> None:
        if event == ATTEMPT_START:
            logger.debug("Attempt started", event_name=event, **payload)
            return

        if event == ATTEMPT_FINISH:
            self._observe(payload)
            if payload.get("success"):
                logger.info("Attempt succeeded", event_name=event, **payload)
            else:
                logger.warning("Attempt failed", event_name=event, **payload)
            return

        logger.debug("Attempt event", event_name=event, **payload)

    def _observe(self, payload: Mapping[str, Any]) -> None:
        model = payload.get("model_id") or "unknown"
        success = "true" if payload.get("success") else "false"

        attempts_total.labels(model=model, success=success).inc()
        attempt_latency_seconds.labels(model=model, success=success).observe(
            (payload.get("duration_ms") or 0) / 1000
        )
        attempt_tokens_total.labels(model=model, token_type="input").inc(payload.get("input_tokens") or 0)
        attempt_tokens_total.labels(model=model, token_type="output").inc(payload.get("output_tokens") or 0)
