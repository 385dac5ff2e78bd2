"""Resource Settings - default quota for new users and per-field maximums"""

import html
import json
from typing import Any, Dict, Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from billing_resources.core.config import settings
from billing_resources.core.logging_config import get_logger
from billing_resources.models.plugin_setting import PluginSettingModel
from billing_resources.schemas.resources import RESOURCE_TYPES, ResourceVector, is_resource_type
from billing_resources.services.quota_arithmetic import exceeds_limit

logger = get_logger(__name__)


DEFAULT_RESOURCES_KEY = "default_resources"
MAX_RESOURCES_KEY = "max_resources"

# Structural defaults, used for any key missing from the stored JSON
DEFAULT_RESOURCES_STRUCTURE = ResourceVector(
    memory_limit=2048,      # 2GB RAM
    cpu_limit=100,          # one core
    disk_limit=4096,        # 4GB storage
    server_limit=1,
    database_limit=3,
    backup_limit=5,
    allocation_limit=5,
)

MAX_RESOURCES_STRUCTURE = ResourceVector(
    memory_limit=65536,     # 64GB RAM
    cpu_limit=1000,         # ten cores
    disk_limit=131072,      # 128GB storage
    server_limit=50,
    database_limit=100,
    backup_limit=200,
    allocation_limit=200,
)


class PluginSettingsRepository:
    """Namespaced key-value settings stored in the plugin_settings table"""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def get_setting(self, namespace: str, key: str) -> Optional[str]:
        stmt = select(PluginSettingModel.value).where(
            PluginSettingModel.namespace == namespace,
            PluginSettingModel.key == key,
        )
        result = await self.db_session.execute(stmt)
        return result.scalar_one_or_none()

    async def set_setting(self, namespace: str, key: str, value: str) -> None:
        stmt = select(PluginSettingModel).where(
            PluginSettingModel.namespace == namespace,
            PluginSettingModel.key == key,
        )
        result = await self.db_session.execute(stmt)
        setting = result.scalar_one_or_none()

        try:
            if setting is None:
                self.db_session.add(PluginSettingModel(namespace=namespace, key=key, value=value))
            else:
                setting.value = value
            await self.db_session.commit()
        except SQLAlchemyError:
            await self.db_session.rollback()
            raise


def merge_with_structure(raw: Optional[str], structure: ResourceVector) -> ResourceVector:
    """
    Resolve a stored JSON document into a complete vector.

    The document may be HTML-entity encoded. Missing, unparsable or
    non-integer values fall back to the structural default for that field;
    stored zeros are kept.
    """
    merged = structure.resources()
    if raw is None or raw == "":
        return ResourceVector(**merged)

    try:
        decoded = json.loads(html.unescape(raw))
    except (TypeError, ValueError):
        logger.warning("resource_settings_unparsable", raw=raw[:200])
        return ResourceVector(**merged)

    if not isinstance(decoded, dict):
        return ResourceVector(**merged)

    for resource_type in RESOURCE_TYPES:
        if resource_type not in decoded:
            continue
        value = _as_int(decoded[resource_type])
        if value is not None:
            merged[resource_type] = value

    return ResourceVector(**merged)


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return None
    return None


class ResourceSettingsService:
    """
    Typed access to the default and maximum resource vectors.

    Every read goes back to the store and merges with the structural
    defaults, so callers always get all seven fields.
    """

    def __init__(
        self,
        repository: PluginSettingsRepository,
        namespace: Optional[str] = None
    ):
        self.repository = repository
        self.namespace = namespace or settings.SETTINGS_NAMESPACE

    async def get_default_resources(self) -> ResourceVector:
        raw = await self.repository.get_setting(self.namespace, DEFAULT_RESOURCES_KEY)
        return merge_with_structure(raw, DEFAULT_RESOURCES_STRUCTURE)

    async def set_default_resources(self, values: Dict[str, int]) -> ResourceVector:
        resolved = self._complete(values, DEFAULT_RESOURCES_STRUCTURE)
        await self.repository.set_setting(
            self.namespace, DEFAULT_RESOURCES_KEY, json.dumps(resolved.resources())
        )
        logger.info("default_resources_saved", **resolved.resources())
        return resolved

    async def get_max_resources(self) -> ResourceVector:
        raw = await self.repository.get_setting(self.namespace, MAX_RESOURCES_KEY)
        return merge_with_structure(raw, MAX_RESOURCES_STRUCTURE)

    async def set_max_resources(self, values: Dict[str, int]) -> ResourceVector:
        resolved = self._complete(values, MAX_RESOURCES_STRUCTURE)
        await self.repository.set_setting(
            self.namespace, MAX_RESOURCES_KEY, json.dumps(resolved.resources())
        )
        logger.info("max_resources_saved", **resolved.resources())
        return resolved

    async def get_all_settings(self) -> Dict[str, ResourceVector]:
        return {
            DEFAULT_RESOURCES_KEY: await self.get_default_resources(),
            MAX_RESOURCES_KEY: await self.get_max_resources(),
        }

    async def get_max_limit(self, resource_type: str) -> int:
        """Max for one field, 0 (unlimited) for unknown names"""
        max_resources = await self.get_max_resources()
        return max_resources.get(resource_type)

    async def exceeds_max_limit(self, resource_type: str, value: int) -> bool:
        """True if value is above a non-zero maximum"""
        return exceeds_limit(await self.get_max_limit(resource_type), value)

    @staticmethod
    def _complete(values: Dict[str, int], structure: ResourceVector) -> ResourceVector:
        merged = structure.resources()
        for resource_type, value in values.items():
            if is_resource_type(resource_type) and value is not None:
                merged[resource_type] = int(value)
        return ResourceVector(**merged)

