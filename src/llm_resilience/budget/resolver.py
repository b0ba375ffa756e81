"""
Budget policy resolution.

Priority order for a tenant:
1. TenantBudget record from the override lookup (multi-tenancy enabled only)
2. Process-wide static BudgetConfig
3. Unrestricted (no limits, no enforcement)

Whether the override store exists at all is checked once per process and
cached until reset_tenant_budget_table_check() is called.
"""

from typing import ClassVar, Optional, Protocol

import structlog

from llm_resilience.budget.models import UNRESTRICTED, BudgetConfig, TenantBudget
from llm_resilience.tenancy import TenancyConfig

logger = structlog.get_logger(__name__)


class TenantBudgetLookup(Protocol):
    """Source of persisted per-tenant budget overrides."""

    def exists(self) -> bool:
        """Return True if the backing store for overrides is provisioned."""
        ...

    def for_tenant(self, tenant_id: str) -> Optional[TenantBudget]:
        """Return the override for ``tenant_id``, or None."""
        ...


class ConfigResolver:
    """
    Resolves tenant ids and the BudgetConfig that applies to them.

    Attributes:
        tenancy: Multi-tenancy switch and tenant resolver
        static_config: Process-wide budget (None means unrestricted)
        lookup: Optional tenant override lookup
    """

    # Process-wide memo of the override-store check (None = not checked yet)
    _tenant_budget_table_exists: ClassVar[Optional[bool]] = None

    def __init__(
        self,
        tenancy: TenancyConfig,
        static_config: Optional[BudgetConfig] = None,
        lookup: Optional[TenantBudgetLookup] = None,
    ):
        self.tenancy = tenancy
        self.static_config = static_config
        self.lookup = lookup

    def resolve_tenant_id(self, explicit_tenant_id: Optional[str] = None) -> Optional[str]:
        return self.tenancy.resolve_tenant_id(explicit_tenant_id)

    def global_budget_config(self) -> BudgetConfig:
        return self.static_config if self.static_config is not None else UNRESTRICTED

    def resolve_budget_config(self, tenant_id: Optional[str]) -> BudgetConfig:
        """
        Resolve the policy for an already-resolved tenant id.

        Unknown tenants get the process-wide config verbatim.
        """
        if tenant_id is None or not self.tenancy.enabled:
            return self.global_budget_config()

        tenant_budget = self.lookup_tenant_budget(tenant_id)
        if tenant_budget is not None:
            return tenant_budget.to_budget_config()

        return self.global_budget_config()

    def lookup_tenant_budget(self, tenant_id: str) -> Optional[TenantBudget]:
        """Fetch the override record; lookup failures are logged and read as absent."""
        if self.lookup is None or not self.tenant_budget_table_exists():
            return None

        try:
            return self.lookup.for_tenant(tenant_id)
        except Exception as e:
            logger.warning(
                "Failed to look up tenant budget",
                tenant_id=tenant_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

    def tenant_budget_table_exists(self) -> bool:
        cls = type(self)
        if cls._tenant_budget_table_exists is not None:
            return cls._tenant_budget_table_exists

        if self.lookup is None:
            return False

        try:
            cls._tenant_budget_table_exists = bool(self.lookup.exists())
        except Exception as e:
            logger.warning(
                "Tenant budget store check failed, treating as absent",
                error_type=type(e).__name__,
                error=str(e),
            )
            cls._tenant_budget_table_exists = False

        logger.debug("Tenant budget store checked", exists=cls._tenant_budget_table_exists)
        return cls._tenant_budget_table_exists

    @classmethod
    def reset_tenant_budget_table_check(cls) -> None:
        """Forget the cached check result (next lookup checks again)."""
        cls._tenant_budget_table_exists = None
