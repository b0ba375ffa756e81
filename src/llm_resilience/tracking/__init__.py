"""Per-request attempt tracking and lifecycle notifications."""

from llm_resilience.tracking.attempt_tracker import Attempt, AttemptHandle, AttemptTracker
from llm_resilience.tracking.notifications import LoggingNotificationSink, NotificationSink

__all__ = [
    "Attempt",
    "AttemptHandle",
    "AttemptTracker",
    "LoggingNotificationSink",
    "NotificationSink",
]
