"""Circuit breaker state and configuration models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CircuitState(str, Enum):
    """
    Derived breaker state.

    Only two states exist: recovery is time-based, so there is no half-open
    trial state. OPEN lasts exactly as long as the open marker's expiry.
    """

    CLOSED = "closed"
    OPEN = "open"


class CircuitBreakerConfig(BaseModel):
    """
    Thresholds for one circuit breaker.

    Attributes:
        errors: Failures within the window that open the breaker
        within: Failure window in seconds (counter expiry, set on first failure)
        cooldown: Seconds the breaker stays open before closing on its own
    """
    model_config = ConfigDict(frozen=True)

    errors: int = Field(default=10, ge=1, description="Failures that trip the breaker")
    within: float = Field(default=60.0, gt=0, description="Failure window in seconds")
    cooldown: float = Field(default=300.0, gt=0, description="Open duration in seconds")
