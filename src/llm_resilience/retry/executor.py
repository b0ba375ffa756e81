"""
Reliability executor: budget check, circuit breakers, retries and fallbacks
around a single logical LLM call.

Execution order:
    1. Budget check (hard enforcement raises before any provider call)
    2. For each candidate model (primary first, then fallbacks):
       a. Skip it when its circuit breaker is open
       b. Call it; retryable errors are retried with backoff only when it is
          the sole candidate, otherwise the next model is tried at once
       c. Move on to the next model when retries run out or the error is
          not retryable
    3. Caller bugs (non-fallback errors) propagate immediately
    4. Raise AllModelsExhaustedError when no model produced a result

Usage:
    executor = ReliabilityExecutor("SupportAgent", "gpt-4o", store=store,
                                   fallback_models=["gpt-4o-mini"])
    result, tracker = executor.execute(lambda model_id: client.generate(model_id, prompt))
"""

import time
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Type, Union

import structlog

from llm_resilience.breaker.circuit_breaker import CircuitBreaker
from llm_resilience.breaker.state import CircuitBreakerConfig
from llm_resilience.budget.tracker import BudgetTracker
from llm_resilience.exceptions import AllModelsExhaustedError, CircuitOpenError, TotalTimeoutError
from llm_resilience.logging_config import call_context
from llm_resilience.monitoring.metrics import circuit_breaker_short_circuits_total
from llm_resilience.retry.policy import RetryStrategy, non_fallback_error
from llm_resilience.store.base import CounterStore
from llm_resilience.store.helpers import CounterStoreHelper
from llm_resilience.tenancy import SINGLE_TENANT, TenancyConfig
from llm_resilience.tracking.attempt_tracker import AttemptTracker
from llm_resilience.tracking.notifications import NotificationSink

logger = structlog.get_logger(__name__)


class ReliabilityExecutor:
    """
    Runs one provider call with the full reliability policy.

    Attributes:
        agent_type: Agent name (breaker and budget scope)
        models_to_try: Primary model followed by fallbacks, de-duplicated
        retry_strategy: Retry count and backoff per model
        total_timeout: Deadline in seconds across every attempt (None = none)
        budget_tracker: Optional spend tracker checked before the first call
    """

    def __init__(
        self,
        agent_type: str,
        primary_model: str,
        *,
        store: CounterStore,
        tenancy: TenancyConfig = SINGLE_TENANT,
        fallback_models: Sequence[str] = (),
        retry_strategy: Optional[RetryStrategy] = None,
        circuit_breaker: Optional[Union[Mapping[str, Any], CircuitBreakerConfig]] = None,
        budget_tracker: Optional[BudgetTracker] = None,
        total_timeout: Optional[float] = None,
        non_fallback_errors: Sequence[Type[BaseException]] = (),
        tenant_id: Optional[str] = None,
        namespace: str = CounterStoreHelper.DEFAULT_NAMESPACE,
        sink: Optional[NotificationSink] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize reliability executor.

        Args:
            agent_type: Agent name
            primary_model: First model to call
            store: Shared counter store for circuit breakers
            tenancy: Multi-tenancy switch and tenant resolver
            fallback_models: Models to try, in order, after the primary
            retry_strategy: Retries per model; defaults to RetryStrategy()
            circuit_breaker: CircuitBreakerConfig or ``{"errors", "within", "cooldown"}``;
                None disables breakers
            budget_tracker: Checked before the first attempt; charged with cost and
                tokens on success
            total_timeout: Deadline across all attempts, in seconds
            non_fallback_errors: Extra exception types that propagate immediately
            tenant_id: Explicit tenant id
            namespace: Store key prefix for breaker keys
            sink: Attempt notification sink
            sleep: Called with the backoff delay between retries
            clock: Monotonic seconds source for the deadline and attempt timing
        """
        self.agent_type = agent_type
        self.models_to_try = list(dict.fromkeys([primary_model, *fallback_models]))
        self.retry_strategy = retry_strategy or RetryStrategy()
        self.budget_tracker = budget_tracker
        self.total_timeout = total_timeout
        self.non_fallback_errors = tuple(non_fallback_errors)
        self.tenant_id = tenancy.resolve_tenant_id(tenant_id)
        self.sink = sink
        self._sleep = sleep
        self._clock = clock

        self.breakers: Dict[str, Optional[CircuitBreaker]] = {
            model_id: CircuitBreaker.from_config(
                agent_type,
                model_id,
                circuit_breaker,
                store=store,
                tenancy=tenancy,
                tenant_id=self.tenant_id,
                namespace=namespace,
            )
            for model_id in self.models_to_try
        }

    def execute(
        self,
        call: Callable[[str], Any],
        cost_of: Optional[Callable[[Any], Optional[float]]] = None,
    ) -> Tuple[Any, AttemptTracker]:
        """
        Execute ``call(model_id)`` under the reliability policy.

        Args:
            call: Performs the provider request for the given model id
            cost_of: Returns the USD cost of a successful result, for budget tracking

        Returns:
            Tuple of (result, attempt tracker)

        Raises:
            BudgetExceededError: Over budget under hard enforcement
            TotalTimeoutError: Deadline elapsed before an attempt could start
            AllModelsExhaustedError: Every model failed or was short-circuited
            Exception: Non-fallback errors raised by ``call`` propagate unchanged
        """
        with call_context(self.agent_type, self.tenant_id):
            return self._run(call, cost_of)

    def _run(
        self,
        call: Callable[[str], Any],
        cost_of: Optional[Callable[[Any], Optional[float]]],
    ) -> Tuple[Any, AttemptTracker]:
        if self.budget_tracker is not None:
            self.budget_tracker.check_budget(self.agent_type, self.tenant_id)

        tracker = AttemptTracker(sink=self.sink, clock=self._clock)
        start = self._clock()
        last_error: Optional[BaseException] = None

        for model_id in self.models_to_try:
            breaker = self.breakers[model_id]
            if breaker is not None and breaker.is_open():
                tracker.record_short_circuit(model_id)
                circuit_breaker_short_circuits_total.labels(agent_type=self.agent_type, model=model_id).inc()
                if last_error is None:
                    last_error = CircuitOpenError(self.agent_type, model_id, self.tenant_id)
                logger.info(
                    "Circuit open, skipping model",
                    agent_type=self.agent_type,
                    model_id=model_id,
                    tenant_id=self.tenant_id,
                )
                continue

            attempt_index = 0
            while True:
                self._check_deadline(start)

                handle = tracker.start_attempt(model_id)
                try:
                    result = call(model_id)
                except Exception as e:
                    last_error = e
                    if breaker is not None:
                        breaker.record_failure()
                    tracker.complete_attempt(handle, success=False, error=e)

                    if non_fallback_error(e, self.non_fallback_errors):
                        logger.error(
                            "Non-fallback error, aborting",
                            agent_type=self.agent_type,
                            model_id=model_id,
                            error_type=type(e).__name__,
                        )
                        raise

                    if self._should_retry(e, attempt_index):
                        attempt_index += 1
                        delay = self.retry_strategy.delay_for(attempt_index)
                        logger.warning(
                            "Retryable error, retrying same model",
                            agent_type=self.agent_type,
                            model_id=model_id,
                            attempt=attempt_index,
                            max_retries=self.retry_strategy.max_retries,
                            backoff_seconds=round(delay, 3),
                            error_type=type(e).__name__,
                        )
                        self._sleep(delay)
                        continue

                    logger.warning(
                        "Model exhausted, falling back",
                        agent_type=self.agent_type,
                        model_id=model_id,
                        attempts_used=attempt_index + 1,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    break

                if breaker is not None:
                    breaker.record_success()
                tracker.complete_attempt(handle, success=True, response=result)
                self._record_usage(result, tracker, cost_of)

                logger.info(
                    "Reliability executor succeeded",
                    agent_type=self.agent_type,
                    model_id=tracker.chosen_model_id,
                    total_attempts=tracker.attempts_count,
                    total_duration_ms=round(tracker.total_duration_ms, 1),
                )
                return result, tracker

        logger.error(
            "All models exhausted",
            agent_type=self.agent_type,
            models_tried=self.models_to_try,
            total_attempts=tracker.attempts_count,
            last_error_type=type(last_error).__name__ if last_error else None,
        )
        raise AllModelsExhaustedError(self.models_to_try, last_error, attempts=tracker.to_json_array())

    def _should_retry(self, error: BaseException, attempt_index: int) -> bool:
        # Fallback models take precedence over same-model retries
        if len(self.models_to_try) > 1:
            return False
        return self.retry_strategy.should_retry(attempt_index) and self.retry_strategy.retryable(error)

    def _check_deadline(self, start: float) -> None:
        if self.total_timeout is None:
            return
        elapsed = self._clock() - start
        if elapsed >= self.total_timeout:
            logger.error(
                "Total timeout exceeded",
                agent_type=self.agent_type,
                timeout=self.total_timeout,
                elapsed=round(elapsed, 3),
            )
            raise TotalTimeoutError(self.total_timeout, elapsed)

    def _record_usage(
        self,
        result: Any,
        tracker: AttemptTracker,
        cost_of: Optional[Callable[[Any], Optional[float]]],
    ) -> None:
        if self.budget_tracker is None:
            return
        self.budget_tracker.record_tokens(self.agent_type, tracker.total_tokens, self.tenant_id)
        if cost_of is not None:
            self.budget_tracker.record_spend(self.agent_type, cost_of(result), self.tenant_id)
