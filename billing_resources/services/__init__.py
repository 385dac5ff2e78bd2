"""Services package"""

from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.resource_quota_manager import ResourceQuotaManager
from billing_resources.services.resource_settings import (
    PluginSettingsRepository,
    ResourceSettingsService,
)
from billing_resources.services.server_resource_validator import (
    ServerResourceUpdateResult,
    ServerResourceValidator,
    ServerUpdateStatus,
)
from billing_resources.services.user_resources_store import (
    OperationResult,
    QuotaStatus,
    UserResourcesStore,
)

__all__ = [
    "PanelRepository",
    "ResourceQuotaManager",
    "PluginSettingsRepository",
    "ResourceSettingsService",
    "ServerResourceUpdateResult",
    "ServerResourceValidator",
    "ServerUpdateStatus",
    "OperationResult",
    "QuotaStatus",
    "UserResourcesStore",
]
