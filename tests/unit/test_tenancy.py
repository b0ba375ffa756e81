"""
Unit tests for tenant resolution.
"""

from unittest.mock import Mock

from llm_resilience.breaker import CircuitBreaker
from llm_resilience.budget import BudgetConfig, BudgetTracker
from llm_resilience.tenancy import SINGLE_TENANT, TenancyConfig


def _failing_resolver():
    raise RuntimeError("no request context")


def test_disabled_ignores_everything():
    resolver = Mock(return_value="acme")

    assert SINGLE_TENANT.resolve_tenant_id("acme") is None
    assert TenancyConfig(enabled=False, resolver=resolver).resolve_tenant_id() is None
    resolver.assert_not_called()


def test_explicit_id_wins_over_resolver():
    resolver = Mock(return_value="globex")

    assert TenancyConfig(enabled=True, resolver=resolver).resolve_tenant_id("acme") == "acme"
    resolver.assert_not_called()


def test_falsy_explicit_id_is_kept():
    tenancy = TenancyConfig(enabled=True, resolver=lambda: "globex")

    assert tenancy.resolve_tenant_id(0) == 0
    assert tenancy.resolve_tenant_id("0") == "0"


def test_empty_explicit_id_falls_through_to_resolver():
    assert TenancyConfig(enabled=True, resolver=lambda: "globex").resolve_tenant_id("") == "globex"


def test_resolver_returning_blank_means_no_tenant():
    assert TenancyConfig(enabled=True, resolver=lambda: "").resolve_tenant_id() is None
    assert TenancyConfig(enabled=True, resolver=lambda: None).resolve_tenant_id() is None
    assert TenancyConfig(enabled=True).resolve_tenant_id() is None


def test_resolver_failure_means_no_tenant():
    assert TenancyConfig(enabled=True, resolver=_failing_resolver).resolve_tenant_id() is None


def test_resolver_failure_does_not_break_constructors(memory_store, utc_clock):
    tenancy = TenancyConfig(enabled=True, resolver=_failing_resolver)

    breaker = CircuitBreaker("SupportAgent", "gpt-4o", store=memory_store, tenancy=tenancy)
    tracker = BudgetTracker(
        memory_store, tenancy=tenancy, budget_config=BudgetConfig(global_daily=10.0), clock=utc_clock
    )

    assert breaker.tenant_id is None
    assert breaker.count_key == "llm_resilience:cb:count:SupportAgent:gpt-4o"
    assert tracker.record_spend("SupportAgent", 1.0) == 1.0


def test_zero_tenant_scopes_breaker_keys(memory_store):
    breaker = CircuitBreaker(
        "SupportAgent", "gpt-4o", store=memory_store, tenancy=TenancyConfig(enabled=True), tenant_id=0
    )

    assert breaker.count_key == "llm_resilience:cb:tenant:0:count:SupportAgent:gpt-4o"
