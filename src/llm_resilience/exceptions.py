"""
Exception hierarchy for the resilience layer.

Two families live here:

- Domain errors raised by the resilience layer itself (``ResilienceError``
  and its subclasses). Callers can catch the base class broadly or the
  concrete types narrowly.
- Provider errors (``ProviderError`` and subclasses) that provider clients
  may raise so the retry policy can classify them without string matching.
"""

from typing import Any, Sequence


class ResilienceError(Exception):
    """
    Base exception for all resilience-layer errors.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(ResilienceError):
    """Raised for invalid reliability or budget configuration."""
    pass


# === Reliability ===

class ReliabilityError(ResilienceError):
    """Base class for circuit breaker, timeout and fallback errors."""
    pass


class CircuitOpenError(ReliabilityError):
    """
    Raised when a circuit breaker is open and no provider call should be made.

    Attributes:
        agent_type: Agent the breaker belongs to
        model_id: Model whose breaker is open
        tenant_id: Tenant scope of the breaker (None when not tenant-scoped)
    """

    def __init__(self, agent_type: str, model_id: str, tenant_id: str | None = None):
        self.agent_type = agent_type
        self.model_id = model_id
        self.tenant_id = tenant_id

        message = f"Circuit breaker is open for {agent_type} with model {model_id}"
        if tenant_id is not None:
            message += f" (tenant {tenant_id})"
        super().__init__(
            message,
            details={"agent_type": agent_type, "model_id": model_id, "tenant_id": tenant_id},
        )


class TotalTimeoutError(ReliabilityError):
    """
    Raised when the deadline across all retries and fallbacks has elapsed.

    Attributes:
        timeout: Configured total timeout in seconds
        elapsed: Seconds elapsed when the deadline was detected
    """

    def __init__(self, timeout: float, elapsed: float):
        self.timeout = timeout
        self.elapsed = elapsed
        super().__init__(
            f"Total timeout of {timeout}s exceeded (elapsed: {elapsed:.2f}s)",
            details={"timeout": timeout, "elapsed": elapsed},
        )


class AllModelsExhaustedError(ReliabilityError):
    """
    Raised when every candidate model has failed or been short-circuited.

    Attributes:
        models_tried: Candidate models in the order they were considered
        last_error: Last error observed (None if nothing was attempted)
        attempts: Serialized attempt log (see AttemptTracker.to_json_array)
    """

    def __init__(
        self,
        models_tried: Sequence[str],
        last_error: BaseException | None,
        attempts: list[dict[str, Any]] | None = None,
    ):
        self.models_tried = list(models_tried)
        self.last_error = last_error
        self.attempts = attempts or []

        last = str(last_error) if last_error is not None else "none"
        super().__init__(
            f"All models exhausted: {', '.join(self.models_tried)}. Last error: {last}",
            details={"models_tried": self.models_tried, "attempts": self.attempts},
        )


# === Budget ===

class BudgetError(ResilienceError):
    """Base class for budget-related errors."""
    pass


class BudgetExceededError(BudgetError):
    """
    Raised by BudgetTracker.check_budget under hard enforcement.

    Attributes:
        tenant_id: Tenant whose budget was exceeded (None for global)
        budget_type: Which ledger tripped (e.g. "global_daily", "per_agent_monthly")
        limit: Configured limit
        current: Spend recorded in the current period
    """

    def __init__(
        self,
        tenant_id: str | None,
        budget_type: str,
        limit: float,
        current: float,
        agent_type: str | None = None,
    ):
        self.tenant_id = tenant_id
        self.budget_type = budget_type
        self.limit = limit
        self.current = current
        self.agent_type = agent_type

        message = f"Budget exceeded for {budget_type}"
        if agent_type:
            message += f" ({agent_type})"
        if tenant_id is not None:
            message += f" [tenant {tenant_id}]"
        message += f": limit ${limit}, current ${current}"
        super().__init__(
            message,
            details={
                "tenant_id": tenant_id,
                "budget_type": budget_type,
                "limit": limit,
                "current": current,
                "agent_type": agent_type,
            },
        )


# === Provider errors (raised by provider clients, classified by retry policy) ===

class ProviderError(Exception):
    """
    Base exception for LLM provider failures.

    Provider clients are not part of this package; these types give them a
    vocabulary the retry policy understands.
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProviderConnectionError(ProviderError):
    """Unable to reach the provider (DNS, refused, reset...)."""
    pass


class ProviderTimeoutError(ProviderConnectionError):
    """Provider did not answer within the client timeout."""
    pass


class ProviderRateLimitError(ProviderError):
    """Provider rejected the request because of rate limiting (HTTP 429)."""
    pass


class ProviderOverloadedError(ProviderError):
    """Provider reported it is overloaded or out of capacity."""
    pass
