"""
Spend ledgers and budget enforcement.

Each ledger is a float accumulator in the counter store that expires at the
end of its UTC period, so a new day (or month) starts from zero without any
cleanup job. Ledgers exist per tenant (or one global set when multi-tenancy
is disabled) and per agent type.

Token usage has its own ledgers, kept per tenant only.

Key layout (``tenant_part`` is ``tenant:<id>`` or ``global``):
    <ns>:budget:<tenant_part>:<YYYY-MM-DD | YYYY-MM>
    <ns>:budget:<tenant_part>:agent:<agent_type>:<YYYY-MM-DD | YYYY-MM>
    <ns>:tokens:<tenant_part>:<YYYY-MM-DD | YYYY-MM>
    <ns>:budget_alert:<tenant_part>:<budget_type>[:<agent_type>]:<YYYY-MM-DD>
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Union

import structlog

from llm_resilience.budget.models import (
    BudgetConfig,
    BudgetEnforcement,
    BudgetPeriod,
    BudgetScope,
)
from llm_resilience.budget.resolver import ConfigResolver, TenantBudgetLookup
from llm_resilience.exceptions import BudgetExceededError
from llm_resilience.monitoring.metrics import budget_exceeded_total, budget_spend_total, budget_tokens_total
from llm_resilience.store.base import CounterStore
from llm_resilience.store.helpers import CounterStoreHelper
from llm_resilience.tenancy import SINGLE_TENANT, TenancyConfig

logger = structlog.get_logger(__name__)

PERIODS = (BudgetPeriod.DAILY, BudgetPeriod.MONTHLY)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def period_label(period: BudgetPeriod, now: datetime) -> str:
    """Date part of a ledger key: YYYY-MM-DD for daily, YYYY-MM for monthly."""
    if period == BudgetPeriod.DAILY:
        return now.strftime("%Y-%m-%d")
    return now.strftime("%Y-%m")


def seconds_until_period_end(period: BudgetPeriod, now: datetime) -> float:
    """Seconds from ``now`` to the next UTC period boundary (at least 1)."""
    start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == BudgetPeriod.DAILY:
        end = start_of_day + timedelta(days=1)
    elif now.month == 12:
        end = start_of_day.replace(year=now.year + 1, month=1, day=1)
    else:
        end = start_of_day.replace(month=now.month + 1, day=1)
    return max((end - now).total_seconds(), 1.0)


def budget_type_name(scope: BudgetScope, period: BudgetPeriod) -> str:
    prefix = "global" if scope == BudgetScope.GLOBAL else "per_agent"
    return f"{prefix}_{period.value}"


def token_budget_type_name(period: BudgetPeriod) -> str:
    return f"global_{period.value}_tokens"


class BudgetTracker:
    """
    Records LLM spend and enforces the resolved budget policy.

    Usage:
        tracker = BudgetTracker(store, tenancy=tenancy, budget_config=config)
        tracker.check_budget("SupportAgent")          # may raise under hard enforcement
        response = call_provider()
        tracker.record_spend("SupportAgent", 0.0042)

    Store failures never block a call: reads come back as 0.0 and failed
    writes are logged and counted.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        tenancy: TenancyConfig = SINGLE_TENANT,
        budget_config: Optional[BudgetConfig] = None,
        tenant_lookup: Optional[TenantBudgetLookup] = None,
        clock: Optional[Callable[[], datetime]] = None,
        namespace: str = CounterStoreHelper.DEFAULT_NAMESPACE,
    ):
        """
        Initialize budget tracker.

        Args:
            store: Shared counter store
            tenancy: Multi-tenancy switch and tenant resolver
            budget_config: Process-wide budget (None means unrestricted)
            tenant_lookup: Source of per-tenant overrides
            clock: Returns the current timezone-aware UTC datetime
            namespace: Store key prefix
        """
        self.resolver = ConfigResolver(tenancy, budget_config, tenant_lookup)
        self._store = CounterStoreHelper(store, namespace)
        self._clock = clock or utc_now

    # === Keys ===

    @staticmethod
    def _tenant_part(tenant_id: Optional[str]) -> list:
        return ["tenant", tenant_id] if tenant_id is not None else ["global"]

    def _ledger_key(
        self,
        scope: BudgetScope,
        period: BudgetPeriod,
        tenant_id: Optional[str],
        agent_type: Optional[str],
        now: datetime,
    ) -> str:
        parts: list = ["budget", *self._tenant_part(tenant_id)]
        if scope == BudgetScope.AGENT:
            parts.extend(["agent", agent_type])
        parts.append(period_label(period, now))
        return self._store.key(*parts)

    def _token_key(self, period: BudgetPeriod, tenant_id: Optional[str], now: datetime) -> str:
        return self._store.key("tokens", *self._tenant_part(tenant_id), period_label(period, now))

    def _alert_key(
        self,
        budget_type: str,
        tenant_id: Optional[str],
        agent_type: Optional[str],
        now: datetime,
    ) -> str:
        parts: list = ["budget_alert", *self._tenant_part(tenant_id), budget_type]
        if agent_type:
            parts.append(agent_type)
        parts.append(period_label(BudgetPeriod.DAILY, now))
        return self._store.key(*parts)

    def _ledgers(self, agent_type: Optional[str]) -> Iterator[Tuple[BudgetScope, BudgetPeriod]]:
        for period in PERIODS:
            yield BudgetScope.GLOBAL, period
        if agent_type:
            for period in PERIODS:
                yield BudgetScope.AGENT, period

    def _read_tokens(self, period: BudgetPeriod, tenant_id: Optional[str], now: datetime) -> int:
        return int(self._store.read_number(self._token_key(period, tenant_id, now)))

    def _read(
        self,
        scope: BudgetScope,
        period: BudgetPeriod,
        tenant_id: Optional[str],
        agent_type: Optional[str],
        now: Optional[datetime] = None,
    ) -> float:
        now = now or self._clock()
        return self._store.read_number(self._ledger_key(scope, period, tenant_id, agent_type, now))

    # === Spend ===

    def record_spend(
        self,
        agent_type: str,
        amount: Optional[float],
        tenant_id: Optional[str] = None,
    ) -> Optional[float]:
        """
        Add ``amount`` (USD) to every ledger the call counts against.

        Returns:
            New global daily total, or None when nothing was recorded
        """
        if amount is None or amount <= 0:
            return None

        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        now = self._clock()
        global_daily_total = None

        for scope, period in self._ledgers(agent_type):
            key = self._ledger_key(scope, period, resolved_tenant, agent_type, now)
            total = self._store.increment(key, amount, expires_in=seconds_until_period_end(period, now))
            if scope == BudgetScope.GLOBAL and period == BudgetPeriod.DAILY:
                global_daily_total = total

        budget_spend_total.labels(agent_type=agent_type).inc(amount)
        logger.debug(
            "Recorded spend",
            agent_type=agent_type,
            tenant_id=resolved_tenant,
            amount=amount,
            global_daily_total=global_daily_total,
        )
        return global_daily_total

    def current_spend(
        self,
        scope: Union[BudgetScope, str] = BudgetScope.GLOBAL,
        period: Union[BudgetPeriod, str] = BudgetPeriod.DAILY,
        tenant_id: Optional[str] = None,
        agent_type: Optional[str] = None,
    ) -> float:
        """
        Spend recorded in the current period (0.0 when nothing is recorded).

        Raises:
            ValueError: Unknown scope/period, or agent scope without an agent type
        """
        scope = BudgetScope(scope)
        period = BudgetPeriod(period)
        if scope == BudgetScope.AGENT and not agent_type:
            raise ValueError("agent_type is required for the agent budget scope")

        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        return self._read(scope, period, resolved_tenant, agent_type)

    def remaining_budget(
        self,
        scope: Union[BudgetScope, str] = BudgetScope.GLOBAL,
        period: Union[BudgetPeriod, str] = BudgetPeriod.DAILY,
        tenant_id: Optional[str] = None,
        agent_type: Optional[str] = None,
    ) -> Optional[float]:
        """Limit minus current spend (never negative); None when no limit applies."""
        scope = BudgetScope(scope)
        period = BudgetPeriod(period)
        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        config = self.resolver.resolve_budget_config(resolved_tenant)

        limit = config.limit_for(scope, period, agent_type)
        if limit is None:
            return None
        current = self.current_spend(scope, period, tenant_id, agent_type)
        return max(limit - current, 0.0)

    # === Tokens ===

    def record_tokens(
        self,
        agent_type: str,
        tokens: Optional[int],
        tenant_id: Optional[str] = None,
    ) -> Optional[int]:
        """
        Add ``tokens`` to the tenant's daily and monthly token ledgers.

        Tokens are not split by agent; ``agent_type`` only labels the metric.

        Returns:
            New daily token total, or None when nothing was recorded
        """
        if tokens is None or tokens <= 0:
            return None

        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        now = self._clock()
        daily_total = None

        for period in PERIODS:
            key = self._token_key(period, resolved_tenant, now)
            total = self._store.increment(key, tokens, expires_in=seconds_until_period_end(period, now))
            if period == BudgetPeriod.DAILY and total is not None:
                daily_total = int(total)

        budget_tokens_total.labels(agent_type=agent_type).inc(tokens)
        logger.debug(
            "Recorded tokens",
            agent_type=agent_type,
            tenant_id=resolved_tenant,
            tokens=tokens,
            daily_total=daily_total,
        )
        return daily_total

    def current_tokens(
        self,
        period: Union[BudgetPeriod, str] = BudgetPeriod.DAILY,
        tenant_id: Optional[str] = None,
    ) -> int:
        """Tokens recorded in the current period (0 when nothing is recorded)."""
        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        return self._read_tokens(BudgetPeriod(period), resolved_tenant, self._clock())

    def remaining_token_budget(
        self,
        period: Union[BudgetPeriod, str] = BudgetPeriod.DAILY,
        tenant_id: Optional[str] = None,
    ) -> Optional[int]:
        """Token limit minus usage (never negative); None when no token limit applies."""
        period = BudgetPeriod(period)
        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        limit = self.resolver.resolve_budget_config(resolved_tenant).token_limit_for(period)
        if limit is None:
            return None
        return max(limit - self._read_tokens(period, resolved_tenant, self._clock()), 0)

    # === Enforcement ===

    def check_budget(self, agent_type: Optional[str] = None, tenant_id: Optional[str] = None) -> None:
        """
        Compare current spend with every configured limit.

        Spend equal to the limit is still allowed; only spend strictly above
        it counts as exceeded.

        Raises:
            BudgetExceededError: A limit is exceeded under hard enforcement
        """
        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        config = self.resolver.resolve_budget_config(resolved_tenant)
        if config.enforcement == BudgetEnforcement.NONE:
            return

        now = self._clock()
        for scope, period in self._ledgers(agent_type):
            limit = config.limit_for(scope, period, agent_type)
            if limit is None:
                continue

            current = self._read(scope, period, resolved_tenant, agent_type, now)
            if current > limit:
                self._handle_exceeded(
                    config.enforcement,
                    budget_type_name(scope, period),
                    limit,
                    current,
                    resolved_tenant,
                    agent_type if scope == BudgetScope.AGENT else None,
                    now,
                )

        for period in PERIODS:
            token_limit = config.token_limit_for(period)
            if token_limit is None:
                continue

            used = self._read_tokens(period, resolved_tenant, now)
            if used > token_limit:
                self._handle_exceeded(
                    config.enforcement,
                    token_budget_type_name(period),
                    token_limit,
                    used,
                    resolved_tenant,
                    None,
                    now,
                )

    def _handle_exceeded(
        self,
        enforcement: BudgetEnforcement,
        budget_type: str,
        limit: float,
        current: float,
        tenant_id: Optional[str],
        agent_type: Optional[str],
        now: datetime,
    ) -> None:
        budget_exceeded_total.labels(budget_type=budget_type, enforcement=enforcement.value).inc()

        if enforcement == BudgetEnforcement.HARD:
            logger.error(
                "Budget exceeded, blocking call",
                budget_type=budget_type,
                limit=limit,
                current=current,
                tenant_id=tenant_id,
                agent_type=agent_type,
            )
            raise BudgetExceededError(tenant_id, budget_type, limit, current, agent_type=agent_type)

        # Soft overruns are logged once per UTC day per ledger
        alert_key = self._alert_key(budget_type, tenant_id, agent_type, now)
        if self._store.exists(alert_key):
            return
        self._store.write(alert_key, 1, expires_in=seconds_until_period_end(BudgetPeriod.DAILY, now))

        logger.warning(
            "Budget exceeded",
            budget_type=budget_type,
            limit=limit,
            current=current,
            tenant_id=tenant_id,
            agent_type=agent_type,
        )

    # === Administration ===

    def reset(self, tenant_id: Optional[str] = None, agent_type: Optional[str] = None) -> None:
        """
        Delete the current-period ledgers for one tenant (global when not tenant-scoped).

        Spend and token ledgers are cleared along with today's soft-overrun
        markers. Agent ledgers are only cleared when ``agent_type`` is given.
        """
        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        now = self._clock()
        for scope, period in self._ledgers(agent_type):
            self._store.delete(self._ledger_key(scope, period, resolved_tenant, agent_type, now))
            alert_agent = agent_type if scope == BudgetScope.AGENT else None
            self._store.delete(self._alert_key(budget_type_name(scope, period), resolved_tenant, alert_agent, now))

        for period in PERIODS:
            self._store.delete(self._token_key(period, resolved_tenant, now))
            self._store.delete(self._alert_key(token_budget_type_name(period), resolved_tenant, None, now))

        logger.info("Budget reset", tenant_id=resolved_tenant, agent_type=agent_type)

    def status(self, tenant_id: Optional[str] = None, agent_type: Optional[str] = None) -> Dict[str, Any]:
        """Current spend against every applicable limit, for dashboards."""
        resolved_tenant = self.resolver.resolve_tenant_id(tenant_id)
        config = self.resolver.resolve_budget_config(resolved_tenant)
        now = self._clock()

        result: Dict[str, Any] = {
            "tenant_id": resolved_tenant,
            "enforcement": config.enforcement.value,
        }
        if agent_type:
            result["agent_type"] = agent_type

        for scope, period in self._ledgers(agent_type):
            limit = config.limit_for(scope, period, agent_type)
            current = self._read(scope, period, resolved_tenant, agent_type, now)
            result[budget_type_name(scope, period)] = _ledger_status(current, limit, config.enforcement)

        for period in PERIODS:
            token_limit = config.token_limit_for(period)
            used = self._read_tokens(period, resolved_tenant, now)
            result[token_budget_type_name(period)] = _ledger_status(used, token_limit, config.enforcement)

        return result


def _ledger_status(
    current: Union[int, float],
    limit: Optional[Union[int, float]],
    enforcement: BudgetEnforcement,
) -> Dict[str, Any]:
    return {
        "current": current,
        "limit": limit,
        "enforcement": enforcement.value,
        "remaining": max(limit - current, 0) if limit is not None else None,
        "percentage_used": round(current / limit * 100, 2) if limit else None,
    }
