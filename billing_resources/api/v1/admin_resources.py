"""Admin API Endpoints - manage users' quotas and the resource settings"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status

from billing_resources.api.dependencies import (
    get_panel_repository,
    get_quota_manager,
    get_resource_settings,
    get_user_resources_store,
    require_admin,
)
from billing_resources.core.exceptions import QuotaStorageError, QuotaValidationError
from billing_resources.core.logging_config import get_logger
from billing_resources.models.user import UserModel
from billing_resources.schemas.common import Page, Pagination
from billing_resources.schemas.resources import (
    QuotaUpdate,
    ResourceSettings,
    ResourceSettingsUpdate,
    ResourceStatistics,
    UserWithResources,
)
from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.resource_quota_manager import ResourceQuotaManager
from billing_resources.services.resource_settings import ResourceSettingsService
from billing_resources.services.user_resources_store import QuotaStatus, UserResourcesStore


logger = get_logger(__name__)
router = APIRouter(
    prefix="/admin/billing-resources",
    tags=["Admin - Billing Resources"],
    dependencies=[Depends(require_admin)]
)


async def _with_resources(
    users: List[UserModel],
    quota_manager: ResourceQuotaManager
) -> List[UserWithResources]:
    return [
        UserWithResources(
            id=user.id,
            uuid=user.uuid,
            username=user.username,
            email=user.email,
            resources=await quota_manager.get_limits_or_default(user.id),
        )
        for user in users
    ]


# ============================================================================
# Users
# ============================================================================

@router.get("/users", response_model=Page[UserWithResources])
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: str = Query("", description="Filter on username, email or uuid"),
    panel: PanelRepository = Depends(get_panel_repository),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """List users with their total limits, defaults shown for users with no record"""
    pagination = Pagination(page=page, page_size=page_size)
    users = await panel.list_users(pagination.page, pagination.limit, search or None)
    total = await panel.count_users(search or None)

    return Page[UserWithResources].build(
        await _with_resources(users, quota_manager), total, pagination
    )


@router.get("/users/search", response_model=List[UserWithResources])
async def search_users(
    query: str = Query(""),
    limit: int = Query(20, ge=1, le=100),
    panel: PanelRepository = Depends(get_panel_repository),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """
    Search users by username, email or uuid.

    Raises:
        HTTPException 400: If the query is shorter than 2 characters
    """
    if len(query) < 2:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query must be at least 2 characters"
        )

    users = await panel.search_users(query, limit)
    return await _with_resources(users, quota_manager)


@router.get("/users/{user_id}/resources", response_model=UserWithResources)
async def get_user_resources(
    user_id: int,
    panel: PanelRepository = Depends(get_panel_repository),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """Get one user's limits without creating a record"""
    user = await panel.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return (await _with_resources([user], quota_manager))[0]


@router.patch("/users/{user_id}/resources", response_model=UserWithResources)
async def update_user_resources(
    user_id: int,
    update: QuotaUpdate,
    admin: UserModel = Depends(require_admin),
    panel: PanelRepository = Depends(get_panel_repository),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """
    Set one or more of a user's limits.

    Every value must be non-negative and within the configured maximum.

    Raises:
        HTTPException 404: If the user does not exist
        QuotaValidationError: 400 if no fields were given or a value is above max
        QuotaStorageError: 500 if the write failed
    """
    user = await panel.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    changes = update.to_changes()
    if not changes:
        raise QuotaValidationError([], message="No resources to update", error_code="NO_RESOURCES")

    # A retried or failed write rolls the session back and expires these
    admin_id = admin.id
    profile = {"id": user.id, "uuid": user.uuid, "username": user.username, "email": user.email}

    result = await quota_manager.update_user_resources(user_id, changes)
    if result.status == QuotaStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if result.status == QuotaStatus.EXCEEDS_MAX:
        raise QuotaValidationError([result.message], error_code="EXCEEDS_MAX")
    if not result:
        raise QuotaStorageError(
            "Failed to update resources",
            error_code="UPDATE_RESOURCES_FAILED",
            user_id=user_id
        )

    logger.info(
        "admin_updated_user_resources",
        admin_id=admin_id,
        user_id=user_id,
        username=profile["username"],
        changes=changes
    )
    return UserWithResources(
        **profile,
        resources=await quota_manager.get_limits_or_default(user_id)
    )


# ============================================================================
# Statistics
# ============================================================================

@router.get("/statistics", response_model=ResourceStatistics)
async def get_statistics(
    store: UserResourcesStore = Depends(get_user_resources_store)
):
    """User counts plus totals and averages of every limit across records"""
    return await store.statistics()


# ============================================================================
# Settings
# ============================================================================

@router.get("/settings", response_model=ResourceSettings)
async def get_settings(
    resource_settings: ResourceSettingsService = Depends(get_resource_settings)
):
    return ResourceSettings(**await resource_settings.get_all_settings())


@router.patch("/settings", response_model=ResourceSettings)
async def update_settings(
    update: ResourceSettingsUpdate,
    admin: UserModel = Depends(require_admin),
    resource_settings: ResourceSettingsService = Depends(get_resource_settings)
):
    """
    Change the default and/or max resources.

    Fields left out keep their stored value.
    """
    admin_id = admin.id

    if update.default_resources is not None:
        current = await resource_settings.get_default_resources()
        await resource_settings.set_default_resources(
            {**current.resources(), **update.default_resources.to_changes()}
        )

    if update.max_resources is not None:
        current = await resource_settings.get_max_resources()
        await resource_settings.set_max_resources(
            {**current.resources(), **update.max_resources.to_changes()}
        )

    logger.info(
        "admin_updated_resource_settings",
        admin_id=admin_id,
        default_resources=update.default_resources.to_changes() if update.default_resources else None,
        max_resources=update.max_resources.to_changes() if update.max_resources else None
    )
    return ResourceSettings(**await resource_settings.get_all_settings())
