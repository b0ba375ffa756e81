"""
Redis persistence for per-tenant budget overrides.

Storage Strategy:
- Override: String per tenant, key = "{ns}:tenant_budget:{tenant_id}", JSON body
- Registry: Set "{ns}:tenant_budgets" of tenant ids with an override

The registry set doubles as the "is the override store provisioned" marker
that ConfigResolver checks once per process.
"""

from typing import TYPE_CHECKING, List, Optional

import structlog
from redis import Redis

from llm_resilience.budget.models import TenantBudget
from llm_resilience.budget.resolver import ConfigResolver
from llm_resilience.store.helpers import CounterStoreHelper
from llm_resilience.store.redis_store import RedisClient

if TYPE_CHECKING:
    from llm_resilience.config import Settings

logger = structlog.get_logger(__name__)


class RedisTenantBudgetRepository:
    """
    CRUD for TenantBudget records; implements the TenantBudgetLookup protocol.

    Read errors propagate so the resolver can log them and fall back to the
    process-wide budget. Writes follow the save/delete convention of
    returning False on failure.
    """

    def __init__(self, redis_client: Redis, namespace: str = CounterStoreHelper.DEFAULT_NAMESPACE):
        """
        Initialize repository.

        Args:
            redis_client: Redis client instance (decode_responses=True)
            namespace: Key prefix shared with the counter store
        """
        self.redis = redis_client
        self.namespace = namespace

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RedisTenantBudgetRepository":
        """Build a repository on the shared connection pool and configured namespace."""
        return cls(RedisClient.get_client(settings), namespace=settings.CACHE_NAMESPACE)

    @property
    def registry_key(self) -> str:
        return f"{self.namespace}:tenant_budgets"

    def _budget_key(self, tenant_id: str) -> str:
        return f"{self.namespace}:tenant_budget:{tenant_id}"

    # === TenantBudgetLookup ===

    def exists(self) -> bool:
        return self.redis.exists(self.registry_key) > 0

    def for_tenant(self, tenant_id: str) -> Optional[TenantBudget]:
        """
        Retrieve the override for a tenant.

        Returns:
            TenantBudget if stored and valid, None otherwise
        """
        raw = self.redis.get(self._budget_key(tenant_id))
        if raw is None:
            logger.debug("Tenant budget not found", tenant_id=tenant_id)
            return None

        try:
            return TenantBudget.model_validate_json(raw)
        except ValueError as e:
            logger.error("Stored tenant budget is invalid", tenant_id=tenant_id, error=str(e))
            return None

    # === Management ===

    def save_budget(self, budget: TenantBudget) -> bool:
        """
        Create or replace a tenant override.

        Returns:
            True if saved successfully
        """
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.set(self._budget_key(budget.tenant_id), budget.model_dump_json())
            pipe.sadd(self.registry_key, budget.tenant_id)
            pipe.execute()
        except Exception as e:
            logger.error(
                "Failed to save tenant budget",
                tenant_id=budget.tenant_id,
                error=str(e),
                exc_info=True,
            )
            return False

        # A lookup made before the first save would otherwise stay negative
        ConfigResolver.reset_tenant_budget_table_check()
        logger.info(
            "Saved tenant budget",
            tenant_id=budget.tenant_id,
            enforcement=budget.enforcement.value,
        )
        return True

    def delete_budget(self, tenant_id: str) -> bool:
        """
        Remove a tenant override (the tenant falls back to the global budget).

        Returns:
            True if an override was deleted
        """
        try:
            pipe = self.redis.pipeline(transaction=True)
            pipe.delete(self._budget_key(tenant_id))
            pipe.srem(self.registry_key, tenant_id)
            deleted, _ = pipe.execute()
        except Exception as e:
            logger.error("Failed to delete tenant budget", tenant_id=tenant_id, error=str(e), exc_info=True)
            return False

        logger.info("Deleted tenant budget", tenant_id=tenant_id, deleted=bool(deleted))
        return deleted > 0

    def list_tenants(self) -> List[str]:
        """Tenant ids with a stored override, sorted."""
        try:
            return sorted(self.redis.smembers(self.registry_key))
        except Exception as e:
            logger.error("Failed to list tenant budgets", error=str(e), exc_info=True)
            return []
