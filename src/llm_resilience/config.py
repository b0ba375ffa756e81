"""
Configuration settings for the LLM resilience layer.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development (see .env.example).

Settings only feed the builder methods below; breakers, trackers and
executors receive explicit config objects and never read globals.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from llm_resilience.breaker.state import CircuitBreakerConfig
from llm_resilience.budget.models import BudgetConfig, BudgetEnforcement
from llm_resilience.retry.policy import BackoffSpec, BackoffStrategy, RetryStrategy
from llm_resilience.tenancy import TenancyConfig, TenantResolver


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "LLM Resilience"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"  # "production" switches logs to JSON

    # === Redis (counter store) ===
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50  # Connection pool size
    REDIS_SOCKET_TIMEOUT: float = 2.0  # seconds; guards fail open after this
    CACHE_NAMESPACE: str = "llm_resilience"  # Prefix for every store key

    # === Multi-tenancy ===
    MULTI_TENANCY_ENABLED: bool = False

    # === Circuit Breaker ===
    CIRCUIT_BREAKER_ERRORS: int = 10  # Failures that open the breaker
    CIRCUIT_BREAKER_WINDOW_SECONDS: float = 60.0
    CIRCUIT_BREAKER_COOLDOWN_SECONDS: float = 300.0

    # === Budgets (USD, tokens) ===
    BUDGETS_ENABLED: bool = False
    BUDGET_ENFORCEMENT: BudgetEnforcement = BudgetEnforcement.SOFT
    BUDGET_GLOBAL_DAILY: Optional[float] = None
    BUDGET_GLOBAL_MONTHLY: Optional[float] = None
    BUDGET_PER_AGENT_DAILY: dict[str, float] = {}  # JSON, e.g. {"SupportAgent": 5.0}
    BUDGET_PER_AGENT_MONTHLY: dict[str, float] = {}
    BUDGET_GLOBAL_DAILY_TOKENS: Optional[int] = None
    BUDGET_GLOBAL_MONTHLY_TOKENS: Optional[int] = None

    # === Retry & Fallback ===
    RETRY_MAX: int = 2  # Retries per model after the first attempt
    RETRY_BACKOFF: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    RETRY_BASE_SECONDS: float = 1.0
    RETRY_MAX_DELAY_SECONDS: float = 60.0
    TOTAL_TIMEOUT_SECONDS: Optional[float] = None  # Deadline across all attempts
    FALLBACK_MODELS: list[str] = []  # e.g., ["gpt-4o-mini", "claude-3-5-haiku"]

    # === Builders ===

    def tenancy(self, resolver: Optional[TenantResolver] = None) -> TenancyConfig:
        return TenancyConfig(enabled=self.MULTI_TENANCY_ENABLED, resolver=resolver)

    def budget_config(self) -> Optional[BudgetConfig]:
        """Process-wide budget, or None when budgets are disabled (unrestricted)."""
        if not self.BUDGETS_ENABLED:
            return None
        return BudgetConfig(
            enforcement=self.BUDGET_ENFORCEMENT,
            global_daily=self.BUDGET_GLOBAL_DAILY,
            global_monthly=self.BUDGET_GLOBAL_MONTHLY,
            per_agent_daily=self.BUDGET_PER_AGENT_DAILY,
            per_agent_monthly=self.BUDGET_PER_AGENT_MONTHLY,
            global_daily_tokens=self.BUDGET_GLOBAL_DAILY_TOKENS,
            global_monthly_tokens=self.BUDGET_GLOBAL_MONTHLY_TOKENS,
        )

    def circuit_breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            errors=self.CIRCUIT_BREAKER_ERRORS,
            within=self.CIRCUIT_BREAKER_WINDOW_SECONDS,
            cooldown=self.CIRCUIT_BREAKER_COOLDOWN_SECONDS,
        )

    def retry_strategy(self) -> RetryStrategy:
        return RetryStrategy(
            max_retries=self.RETRY_MAX,
            backoff=BackoffSpec(
                strategy=self.RETRY_BACKOFF,
                base=self.RETRY_BASE_SECONDS,
                max_delay=self.RETRY_MAX_DELAY_SECONDS,
            ),
        )


# Global settings instance
settings = Settings()
