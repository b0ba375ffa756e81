"""Spend tracking and budget enforcement."""

from llm_resilience.budget.models import (
    UNRESTRICTED,
    BudgetConfig,
    BudgetEnforcement,
    BudgetPeriod,
    BudgetScope,
    TenantBudget,
)
from llm_resilience.budget.repository import RedisTenantBudgetRepository
from llm_resilience.budget.resolver import ConfigResolver, TenantBudgetLookup
from llm_resilience.budget.tracker import BudgetTracker

__all__ = [
    "UNRESTRICTED",
    "BudgetConfig",
    "BudgetEnforcement",
    "BudgetPeriod",
    "BudgetScope",
    "BudgetTracker",
    "ConfigResolver",
    "RedisTenantBudgetRepository",
    "TenantBudget",
    "TenantBudgetLookup",
]
