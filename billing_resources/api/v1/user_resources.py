"""User Resource API Endpoints - the authenticated user's own quota"""

from fastapi import APIRouter, Depends, HTTPException, status

from billing_resources.api.dependencies import get_current_user, get_quota_manager
from billing_resources.core.exceptions import QuotaStorageError
from billing_resources.core.logging_config import get_logger
from billing_resources.models.user import UserModel
from billing_resources.schemas.resources import (
    RESOURCE_TYPES,
    ResourceSummary,
    ResourceValue,
    ServersOverview,
    is_resource_type,
)
from billing_resources.services.resource_quota_manager import ResourceQuotaManager


logger = get_logger(__name__)
router = APIRouter(prefix="/billing-resources", tags=["User Resources"])


@router.get("/resources", response_model=ResourceSummary)
async def get_my_resources(
    current_user: UserModel = Depends(get_current_user),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """
    Get the authenticated user's limits, used resources and max limits.

    The quota record is created from the default resources on first access.

    Raises:
        HTTPException 401: If user is not authenticated
        QuotaStorageError: If the quota record cannot be loaded
    """
    user_id = current_user.id
    summary = await quota_manager.get_resource_summary(user_id)
    if summary is None:
        raise QuotaStorageError(
            "Failed to load user resources",
            error_code="RESOURCE_LOAD_ERROR",
            user_id=user_id
        )

    logger.info(
        "resource_summary_retrieved",
        user_id=user_id,
        used=summary.used.resources()
    )
    return summary


@router.get("/resources/{resource_type}", response_model=ResourceValue)
async def get_my_resource(
    resource_type: str,
    current_user: UserModel = Depends(get_current_user),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """
    Get a single limit of the authenticated user.

    Raises:
        HTTPException 400: If resource_type is not one of the seven fields
    """
    if not is_resource_type(resource_type):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid resource type. Allowed types: {', '.join(RESOURCE_TYPES)}"
        )

    value = await quota_manager.store.get_resource(current_user.id, resource_type)
    return ResourceValue(resource_type=resource_type, value=value)


@router.get("/servers", response_model=ServersOverview)
async def get_my_servers(
    current_user: UserModel = Depends(get_current_user),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """Get the authenticated user's servers with their resources and live counts"""
    return await quota_manager.get_servers_overview(current_user.id)
