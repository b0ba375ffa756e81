"""
Multi-tenancy switch and tenant resolution.

The breaker and budget tracker receive a TenancyConfig instead of reading
process-wide globals. With multi-tenancy disabled every tenant id collapses
to None so single-tenant deployments share one counter namespace.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import structlog

logger = structlog.get_logger(__name__)

TenantResolver = Callable[[], Optional[str]]


@dataclass(frozen=True)
class TenancyConfig:
    """
    Multi-tenancy settings passed into breakers, trackers and executors.

    Attributes:
        enabled: Whether store keys are scoped by tenant
        resolver: Zero-argument callable returning the current tenant id;
            consulted only when enabled and no tenant id was supplied
    """

    enabled: bool = False
    resolver: Optional[TenantResolver] = None

    def resolve_tenant_id(self, explicit_tenant_id: Optional[str] = None) -> Optional[str]:
        """
        Resolve the tenant id used for store keys.

        Args:
            explicit_tenant_id: Tenant id passed by the caller, if any

        Returns:
            None when multi-tenancy is disabled, the explicit id when given,
            otherwise whatever the resolver returns (None without a resolver
            or when the resolver fails)
        """
        if not self.enabled:
            return None
        if not _blank(explicit_tenant_id):
            return explicit_tenant_id
        if self.resolver is None:
            return None

        try:
            tenant_id = self.resolver()
        except Exception as e:
            logger.warning(
                "Tenant resolver failed, proceeding without tenant scope",
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            return None
        return None if _blank(tenant_id) else tenant_id


def _blank(tenant_id: Optional[str]) -> bool:
    return tenant_id is None or tenant_id == ""


SINGLE_TENANT = TenancyConfig()
