"""Common API dependencies for authentication, authorization and services"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from billing_resources.core.database import get_db
from billing_resources.core.exceptions import AuthenticationError
from billing_resources.core.logging_config import get_logger
from billing_resources.core.security import decode_token, get_token_user_id
from billing_resources.models.user import UserModel, UserRole
from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.resource_quota_manager import ResourceQuotaManager
from billing_resources.services.resource_settings import (
    PluginSettingsRepository,
    ResourceSettingsService,
)
from billing_resources.services.user_resources_store import UserResourcesStore

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


# ============================================================================
# Services
# ============================================================================

def get_panel_repository(db: AsyncSession = Depends(get_db)) -> PanelRepository:
    return PanelRepository(db)


def get_resource_settings(db: AsyncSession = Depends(get_db)) -> ResourceSettingsService:
    return ResourceSettingsService(PluginSettingsRepository(db))


def get_user_resources_store(
    db: AsyncSession = Depends(get_db),
    resource_settings: ResourceSettingsService = Depends(get_resource_settings),
    panel: PanelRepository = Depends(get_panel_repository)
) -> UserResourcesStore:
    return UserResourcesStore(db, resource_settings, panel)


def get_quota_manager(
    store: UserResourcesStore = Depends(get_user_resources_store),
    panel: PanelRepository = Depends(get_panel_repository),
    resource_settings: ResourceSettingsService = Depends(get_resource_settings)
) -> ResourceQuotaManager:
    return ResourceQuotaManager(store, panel, resource_settings)


# ============================================================================
# Authentication
# ============================================================================

async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    panel: PanelRepository = Depends(get_panel_repository)
) -> UserModel:
    """
    Resolve the panel user from the bearer token.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired,
            or names a user that does not exist or is inactive
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated", error_code="missing_token")

    payload = decode_token(credentials.credentials)
    if payload is None:
        logger.warning("token_verification_failed", context="dependencies.get_current_user")
        raise AuthenticationError("Invalid or expired token", error_code="invalid_token")

    user_id = get_token_user_id(payload)
    user = await panel.get_user(user_id) if user_id is not None else None
    if user is None or not user.is_active:
        logger.warning("token_user_not_found", user_id=user_id)
        raise AuthenticationError(
            "User not found or inactive",
            error_code="user_not_found",
            context="dependencies.get_current_user"
        )

    return user


async def require_admin(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    """
    Require the admin role.

    Raises:
        HTTPException 403: If the user is not an admin
    """
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required"
        )
    return current_user
