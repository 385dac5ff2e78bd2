"""Server Resource API Endpoints - view and edit one server's resources"""

from fastapi import APIRouter, Depends, HTTPException, status

from billing_resources.api.dependencies import (
    get_current_user,
    get_panel_repository,
    get_quota_manager,
)
from billing_resources.core.exceptions import (
    QuotaStorageError,
    QuotaValidationError,
    ResourceOverflowError,
)
from billing_resources.core.logging_config import get_logger
from billing_resources.models.server import ServerModel
from billing_resources.models.user import UserModel, UserRole
from billing_resources.schemas.resources import (
    ServerResourcesView,
    ServerResourceUpdate,
    ServerResourceUpdateResponse,
)
from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.resource_quota_manager import ResourceQuotaManager
from billing_resources.services.server_resource_validator import ServerUpdateStatus


logger = get_logger(__name__)
router = APIRouter(prefix="/servers", tags=["Server Resources"])


async def get_accessible_server(
    uuid_short: str,
    current_user: UserModel = Depends(get_current_user),
    panel: PanelRepository = Depends(get_panel_repository)
) -> ServerModel:
    """
    Resolve a server the current user may manage.

    Raises:
        HTTPException 404: If no server has this short UUID
        HTTPException 403: If the user neither owns the server nor is an admin
    """
    server = await panel.get_server_by_uuid_short(uuid_short)
    if server is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Server not found"
        )

    if server.owner_id != current_user.id and current_user.role != UserRole.ADMIN:
        logger.warning(
            "server_access_denied",
            user_id=current_user.id,
            server_id=server.id
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this server"
        )

    return server


@router.get("/{uuid_short}/billing-resources", response_model=ServerResourcesView)
async def get_server_resources(
    server: ServerModel = Depends(get_accessible_server),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """
    Get a server's resources together with its owner's quota.

    available is what remains after all servers; available_for_edit is
    what this server may be given, the other servers considered.
    """
    owner_id = server.owner_id
    view = await quota_manager.get_server_resources(owner_id, server)
    if view is None:
        raise QuotaStorageError(
            "Failed to load user resources",
            error_code="RESOURCE_LOAD_ERROR",
            user_id=owner_id
        )
    return view


@router.patch("/{uuid_short}/billing-resources", response_model=ServerResourceUpdateResponse)
async def update_server_resources(
    update: ServerResourceUpdate,
    server: ServerModel = Depends(get_accessible_server),
    quota_manager: ResourceQuotaManager = Depends(get_quota_manager)
):
    """
    Change a server's resources within its owner's quota.

    Fields sent as null or left out are not changed.

    Raises:
        ResourceOverflowError: 403 if the owner is already over a limit
        QuotaValidationError: 400 with every rejected field, or NO_UPDATES
        QuotaStorageError: 500 if the quota or server cannot be written
    """
    owner_id = server.owner_id
    result = await quota_manager.update_server_resources(
        owner_id, server, update.to_changes()
    )

    if result.status == ServerUpdateStatus.UPDATED:
        return ServerResourceUpdateResponse(server_id=result.server_id, updated=result.updated)

    if result.status == ServerUpdateStatus.OVERFLOW:
        raise ResourceOverflowError(result.overflow_details, user_id=owner_id)

    if result.status == ServerUpdateStatus.VALIDATION_ERROR:
        raise QuotaValidationError(result.errors)

    if result.status == ServerUpdateStatus.NO_UPDATES:
        raise QuotaValidationError([], message="No fields to update", error_code="NO_UPDATES")

    if result.status == ServerUpdateStatus.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")

    raise QuotaStorageError(
        result.message or "Failed to update server resources",
        error_code="UPDATE_FAILED",
        user_id=owner_id,
        details={"server_id": result.server_id}
    )
