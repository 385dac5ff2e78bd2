"""Pydantic schemas for API request/response validation"""

from billing_resources.schemas.resources import (
    RESOURCE_TYPES,
    ResourceVector,
    QuotaRecord,
    QuotaUpdate,
    ServerResourceUpdate,
    ResourceSettings,
    ResourceSettingsUpdate,
    ResourceSummary,
    ServersOverview,
    ServerResourcesView,
    ResourceStatistics,
    UserWithResources,
)
from billing_resources.schemas.common import (
    Pagination,
    Page,
)

__all__ = [
    # Resource schemas
    "RESOURCE_TYPES",
    "ResourceVector",
    "QuotaRecord",
    "QuotaUpdate",
    "ServerResourceUpdate",
    "ResourceSettings",
    "ResourceSettingsUpdate",
    "ResourceSummary",
    "ServersOverview",
    "ServerResourcesView",
    "ResourceStatistics",
    "UserWithResources",
    # Common schemas
    "Pagination",
    "Page",
]
