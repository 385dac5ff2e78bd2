"""Panel Repository - read access to the panel's users, servers and their children"""

from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from billing_resources.models.server import (
    AllocationModel,
    BackupModel,
    ServerDatabaseModel,
    ServerModel,
)
from billing_resources.models.user import UserModel
from billing_resources.schemas.resources import SERVER_RESOURCE_FIELDS
from billing_resources.core.logging_config import get_logger

logger = get_logger(__name__)


class PanelRepository:
    """
    Queries against tables the panel owns.

    The quota engine never writes users; the only write here is the
    server resource update that the edit flow commits after validation.
    """

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    # ========================================================================
    # Users
    # ========================================================================

    async def user_exists(self, user_id: int) -> bool:
        if user_id is None or user_id <= 0:
            return False
        stmt = select(UserModel.id).where(UserModel.id == user_id)
        result = await self.db_session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_user(self, user_id: int) -> Optional[UserModel]:
        if user_id is None or user_id <= 0:
            return None
        result = await self.db_session.execute(
            select(UserModel).where(UserModel.id == user_id)
        )
        return result.scalar_one_or_none()

    async def list_users(
        self,
        page: int = 1,
        limit: int = 20,
        search: Optional[str] = None
    ) -> List[UserModel]:
        offset = (page - 1) * limit
        stmt = (
            self._filtered_users(select(UserModel), search)
            .order_by(UserModel.username)
            .offset(offset)
            .limit(limit)
        )
        result = await self.db_session.execute(stmt)
        return list(result.scalars().all())

    async def search_users(self, query: str, limit: int = 20) -> List[UserModel]:
        """Match on username, email or uuid, case-insensitively"""
        stmt = (
            self._filtered_users(select(UserModel), query)
            .order_by(UserModel.username)
            .limit(limit)
        )
        result = await self.db_session.execute(stmt)
        return list(result.scalars().all())

    async def count_users(self, search: Optional[str] = None) -> int:
        stmt = self._filtered_users(select(func.count(UserModel.id)), search)
        result = await self.db_session.execute(stmt)
        return int(result.scalar_one())

    @staticmethod
    def _filtered_users(stmt, search: Optional[str]):
        if not search:
            return stmt
        pattern = f"%{search.lower()}%"
        return stmt.where(
            or_(
                func.lower(UserModel.username).like(pattern),
                func.lower(UserModel.email).like(pattern),
                func.lower(UserModel.uuid).like(pattern),
            )
        )

    # ========================================================================
    # Servers
    # ========================================================================

    async def get_servers_by_owner(self, user_id: int) -> List[ServerModel]:
        stmt = select(ServerModel).where(ServerModel.owner_id == user_id).order_by(ServerModel.id)
        result = await self.db_session.execute(stmt)
        return list(result.scalars().all())

    async def get_server_by_id(self, server_id: int) -> Optional[ServerModel]:
        result = await self.db_session.execute(
            select(ServerModel).where(ServerModel.id == server_id)
        )
        return result.scalar_one_or_none()

    async def get_server_by_uuid_short(self, uuid_short: str) -> Optional[ServerModel]:
        result = await self.db_session.execute(
            select(ServerModel).where(ServerModel.uuid_short == uuid_short)
        )
        return result.scalar_one_or_none()

    async def update_server_fields(self, server_id: int, fields: Dict[str, Any]) -> bool:
        """
        Write resource columns of one server in a single statement.

        Only the six resource columns are accepted. Storage errors propagate
        so the caller can roll back and report them.
        """
        payload = {
            field: int(value)
            for field, value in fields.items()
            if field in SERVER_RESOURCE_FIELDS
        }
        if not payload:
            return False

        stmt = (
            update(ServerModel)
            .where(ServerModel.id == server_id)
            .values(**payload)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.db_session.execute(stmt)
        await self.db_session.commit()

        logger.info(
            "server_resources_written",
            server_id=server_id,
            fields=payload,
        )
        return result.rowcount > 0

    # ========================================================================
    # Child entity counts
    # ========================================================================

    async def count_databases(self, server_id: int) -> int:
        return await self._count(ServerDatabaseModel, server_id)

    async def count_backups(self, server_id: int) -> int:
        return await self._count(BackupModel, server_id)

    async def count_allocations(self, server_id: int) -> int:
        return await self._count(AllocationModel, server_id)

    async def _count(self, model, server_id: int) -> int:
        stmt = select(func.count(model.id)).where(model.server_id == server_id)
        result = await self.db_session.execute(stmt)
        return int(result.scalar_one())
