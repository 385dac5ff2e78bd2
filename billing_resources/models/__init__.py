"""SQLAlchemy models for the billing resources addon"""

from billing_resources.models.base import Base
from billing_resources.models.user import UserModel, UserRole
from billing_resources.models.server import (
    ServerModel,
    ServerDatabaseModel,
    BackupModel,
    AllocationModel,
)
from billing_resources.models.user_resources import UserResourcesModel
from billing_resources.models.plugin_setting import PluginSettingModel

__all__ = [
    "Base",
    "UserModel",
    "UserRole",
    "ServerModel",
    "ServerDatabaseModel",
    "BackupModel",
    "AllocationModel",
    "UserResourcesModel",
    "PluginSettingModel",
]
