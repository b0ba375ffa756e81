"""
Budget data models.

BudgetConfig is the resolved policy the tracker enforces. Every supported
limit is an explicit field; there is no dynamic attribute lookup.
TenantBudget is the persisted per-tenant override record.
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class BudgetEnforcement(str, Enum):
    """
    How a budget reacts to spend over limit.

    NONE tracks spend only, SOFT logs a warning, HARD blocks the call.
    """

    NONE = "none"
    SOFT = "soft"
    HARD = "hard"


class BudgetScope(str, Enum):
    GLOBAL = "global"
    AGENT = "agent"


class BudgetPeriod(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


class BudgetConfig(BaseModel):
    """
    Resolved budget policy for one tenant (or the whole process).

    Spend limits are in USD and token limits in tokens; None means no limit
    for that ledger. Token limits apply to the tenant as a whole, never per agent.
    """
    model_config = ConfigDict(frozen=True)

    enforcement: BudgetEnforcement = Field(
        default=BudgetEnforcement.SOFT, description="none | soft | hard"
    )
    global_daily: Optional[float] = Field(default=None, ge=0, description="Daily limit across all agents")
    global_monthly: Optional[float] = Field(default=None, ge=0, description="Monthly limit across all agents")
    per_agent_daily: Dict[str, float] = Field(default_factory=dict, description="Daily limit by agent type")
    per_agent_monthly: Dict[str, float] = Field(default_factory=dict, description="Monthly limit by agent type")
    global_daily_tokens: Optional[int] = Field(default=None, ge=0, description="Daily token limit across all agents")
    global_monthly_tokens: Optional[int] = Field(
        default=None, ge=0, description="Monthly token limit across all agents"
    )

    @property
    def enabled(self) -> bool:
        return self.enforcement != BudgetEnforcement.NONE

    def limit_for(
        self,
        scope: BudgetScope,
        period: BudgetPeriod,
        agent_type: Optional[str] = None,
    ) -> Optional[float]:
        """Return the configured limit for one ledger, or None."""
        if scope == BudgetScope.GLOBAL:
            return self.global_daily if period == BudgetPeriod.DAILY else self.global_monthly

        if agent_type is None:
            return None
        limits = self.per_agent_daily if period == BudgetPeriod.DAILY else self.per_agent_monthly
        return limits.get(agent_type)

    def token_limit_for(self, period: BudgetPeriod) -> Optional[int]:
        return self.global_daily_tokens if period == BudgetPeriod.DAILY else self.global_monthly_tokens


UNRESTRICTED = BudgetConfig(enforcement=BudgetEnforcement.NONE)


class TenantBudget(BaseModel):
    """
    Persisted budget override for one tenant.

    When present it replaces the process-wide budget for that tenant entirely;
    limits left unset here mean "no limit", not "inherit".
    """

    tenant_id: str = Field(..., min_length=1, description="Tenant identifier")
    daily_limit: Optional[float] = Field(default=None, ge=0)
    monthly_limit: Optional[float] = Field(default=None, ge=0)
    per_agent_daily: Dict[str, float] = Field(default_factory=dict)
    per_agent_monthly: Dict[str, float] = Field(default_factory=dict)
    daily_token_limit: Optional[int] = Field(default=None, ge=0)
    monthly_token_limit: Optional[int] = Field(default=None, ge=0)
    enforcement: BudgetEnforcement = Field(default=BudgetEnforcement.SOFT)

    def to_budget_config(self) -> BudgetConfig:
        return BudgetConfig(
            enforcement=self.enforcement,
            global_daily=self.daily_limit,
            global_monthly=self.monthly_limit,
            per_agent_daily=dict(self.per_agent_daily),
            per_agent_monthly=dict(self.per_agent_monthly),
            global_daily_tokens=self.daily_token_limit,
            global_monthly_tokens=self.monthly_token_limit,
        )
