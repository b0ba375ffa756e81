"""Shared test fixtures and configuration for all tests.

Provides settings, controllable clocks and an in-memory counter store so
breaker and budget tests never need a live Redis.
"""

from datetime import datetime, timedelta, timezone

import pytest

from llm_resilience.budget.resolver import ConfigResolver
from llm_resilience.config import Settings
from llm_resilience.store.helpers import CounterStoreHelper
from llm_resilience.store.memory import InMemoryCounterStore
from llm_resilience.tenancy import TenancyConfig


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUTCClock:
    """Manually advanced timezone-aware UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def test_settings() -> Settings:
    """Test settings with safe defaults for local testing.

    Override specific settings in individual tests as needed:
        def test_something(test_settings):
            test_settings.RETRY_MAX = 0
    """
    return Settings(
        # === Application ===
        APP_NAME="LLM Resilience (Test)",
        LOG_LEVEL="DEBUG",
        ENVIRONMENT="development",

        # === Redis ===
        REDIS_URL="redis://localhost:6379/0",
        REDIS_MAX_CONNECTIONS=10,
        CACHE_NAMESPACE="test",

        # === Reliability ===
        MULTI_TENANCY_ENABLED=False,
        BUDGETS_ENABLED=False,
        FALLBACK_MODELS=[],
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def utc_clock() -> FakeUTCClock:
    """UTC clock parked at 2026-03-15 12:00:00."""
    return FakeUTCClock(datetime(2026, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store(fake_clock: FakeClock) -> InMemoryCounterStore:
    """In-memory counter store driven by fake_clock."""
    return InMemoryCounterStore(clock=fake_clock)


@pytest.fixture
def multi_tenant() -> TenancyConfig:
    return TenancyConfig(enabled=True)


@pytest.fixture(autouse=True)
def reset_process_caches():
    """Reset process-wide memoized state between tests."""
    ConfigResolver.reset_tenant_budget_table_check()
    CounterStoreHelper._race_warning_logged = False
    yield
    ConfigResolver.reset_tenant_budget_table_check()
    CounterStoreHelper._race_warning_logged = False
