"""
Store-backed circuit breaker for (agent, model, tenant) pairs.

The breaker holds no state itself. Two store keys describe it:
- a failure counter that expires ``within`` seconds after the first failure
- an open marker that expires ``cooldown`` seconds after the breaker trips

OPEN means the marker exists. When the marker expires the breaker is CLOSED
again without any further call.

In multi-tenant mode keys carry the tenant id, so one tenant's failures
never open another tenant's breaker. With multi-tenancy disabled the tenant
part is left out of the key entirely and every caller shares one breaker
per (agent, model).
"""

import time
from typing import Any, Callable, Mapping, Optional

import structlog

from llm_resilience.breaker.state import CircuitBreakerConfig, CircuitState
from llm_resilience.monitoring.metrics import circuit_breaker_opened_total
from llm_resilience.store.base import CounterStore
from llm_resilience.store.helpers import CounterStoreHelper
from llm_resilience.tenancy import SINGLE_TENANT, TenancyConfig

logger = structlog.get_logger(__name__)


class CircuitBreaker:
    """
    Failure gate for one agent/model pair, optionally scoped to a tenant.

    Usage:
        breaker = CircuitBreaker("SupportAgent", "gpt-4o", store=store)
        if breaker.is_open():
            ...  # skip this model
        try:
            response = call_provider()
        except Exception:
            breaker.record_failure()
            raise
        breaker.record_success()

    Attributes:
        agent_type: Agent name
        model_id: Model identifier
        tenant_id: Resolved tenant (None when not tenant-scoped)
        config: Thresholds (errors, within, cooldown)
    """

    def __init__(
        self,
        agent_type: str,
        model_id: str,
        *,
        store: CounterStore,
        tenancy: TenancyConfig = SINGLE_TENANT,
        tenant_id: Optional[str] = None,
        config: Optional[CircuitBreakerConfig] = None,
        namespace: str = CounterStoreHelper.DEFAULT_NAMESPACE,
        wall_clock: Callable[[], float] = time.time,
    ):
        """
        Initialize circuit breaker.

        Args:
            agent_type: Agent name
            model_id: Model identifier
            store: Shared counter store
            tenancy: Multi-tenancy switch and tenant resolver
            tenant_id: Explicit tenant id (ignored when multi-tenancy is disabled)
            config: Thresholds; defaults to 10 errors within 60s, 300s cooldown
            namespace: Store key prefix
            wall_clock: Epoch-seconds source used for the open timestamp
        """
        self.agent_type = agent_type
        self.model_id = model_id
        self.tenant_id = tenancy.resolve_tenant_id(tenant_id)
        self.config = config or CircuitBreakerConfig()
        self._store = CounterStoreHelper(store, namespace)
        self._wall_clock = wall_clock

    @classmethod
    def from_config(
        cls,
        agent_type: str,
        model_id: str,
        config: Any,
        *,
        store: CounterStore,
        tenancy: TenancyConfig = SINGLE_TENANT,
        tenant_id: Optional[str] = None,
        namespace: str = CounterStoreHelper.DEFAULT_NAMESPACE,
    ) -> Optional["CircuitBreaker"]:
        """
        Build a breaker from a ``{"errors", "within", "cooldown"}`` mapping.

        A CircuitBreakerConfig is accepted as-is; missing mapping keys take
        the defaults.

        Returns:
            None when ``config`` is neither (breaker not configured)
        """
        if isinstance(config, CircuitBreakerConfig):
            breaker_config = config
        elif isinstance(config, Mapping):
            defaults = CircuitBreakerConfig()
            breaker_config = CircuitBreakerConfig(
                errors=config.get("errors") or defaults.errors,
                within=config.get("within") or defaults.within,
                cooldown=config.get("cooldown") or defaults.cooldown,
            )
        else:
            return None

        return cls(
            agent_type,
            model_id,
            store=store,
            tenancy=tenancy,
            tenant_id=tenant_id,
            config=breaker_config,
            namespace=namespace,
        )

    # === Keys ===

    def _key(self, kind: str) -> str:
        if self.tenant_id is not None:
            return self._store.key("cb", "tenant", self.tenant_id, kind, self.agent_type, self.model_id)
        return self._store.key("cb", kind, self.agent_type, self.model_id)

    @property
    def count_key(self) -> str:
        return self._key("count")

    @property
    def open_key(self) -> str:
        return self._key("open")

    # === State ===

    def is_open(self) -> bool:
        """Return True while the open marker exists (store failures read as closed)."""
        return self._store.exists(self.open_key)

    def state(self) -> CircuitState:
        return CircuitState.OPEN if self.is_open() else CircuitState.CLOSED

    def failure_count(self) -> int:
        """Failures recorded in the current window."""
        return int(self._store.read_number(self.count_key))

    def time_until_close(self) -> Optional[float]:
        """
        Seconds until the cooldown expires.

        Returns:
            None when closed; the full cooldown when the open timestamp is unreadable
        """
        if not self.is_open():
            return None

        opened_at = self._store.read_number(self.open_key)
        if opened_at <= 0:
            return self.config.cooldown
        elapsed = self._wall_clock() - opened_at
        return max(self.config.cooldown - elapsed, 0.0)

    # === Transitions ===

    def record_failure(self) -> bool:
        """
        Count a failed call and open the breaker once the threshold is reached.

        Returns:
            True if the breaker is open after this failure
        """
        count = self._store.increment(self.count_key, 1, expires_in=self.config.within)
        if count is None:
            # Store unavailable: nothing was counted, behave as closed
            return False

        if count >= self.config.errors and not self.is_open():
            self._open()
            return True

        return self.is_open()

    def record_success(self, reset_counter: bool = True) -> None:
        """Clear the failure counter so stale failures do not accumulate."""
        if reset_counter:
            self._store.delete(self.count_key)

    def reset(self) -> None:
        """Close the breaker and clear its counter (operator intervention)."""
        self._store.delete(self.open_key)
        self._store.delete(self.count_key)
        logger.info(
            "Circuit breaker reset",
            agent_type=self.agent_type,
            model_id=self.model_id,
            tenant_id=self.tenant_id,
        )

    def _open(self) -> None:
        self._store.write(self.open_key, self._wall_clock(), expires_in=self.config.cooldown)
        circuit_breaker_opened_total.labels(agent_type=self.agent_type, model=self.model_id).inc()
        logger.warning(
            "Circuit breaker opened",
            agent_type=self.agent_type,
            model_id=self.model_id,
            tenant_id=self.tenant_id,
            errors=self.config.errors,
            within=self.config.within,
            cooldown=self.config.cooldown,
        )

    def status(self) -> dict[str, Any]:
        """Snapshot for dashboards and operator tooling."""
        return {
            "agent_type": self.agent_type,
            "model_id": self.model_id,
            "tenant_id": self.tenant_id,
            "open": self.is_open(),
            "failure_count": self.failure_count(),
            "errors_threshold": self.config.errors,
            "window_seconds": self.config.within,
            "cooldown_seconds": self.config.cooldown,
        }
