"""Resource Quota Manager - quota accounting over users and their servers"""

from typing import Any, Dict, Iterable, Optional
from sqlalchemy.exc import SQLAlchemyError

from billing_resources.core.logging_config import get_logger
from billing_resources.core.monitoring import track_server_resource_edit
from billing_resources.models.server import ServerModel
from billing_resources.schemas.resources import (
    QuotaRecord,
    ResourceSummary,
    ResourceVector,
    ServerInfo,
    ServerResources,
    ServerResourcesView,
    ServersOverview,
    ServerUsage,
    OverflowReport,
    is_resource_type,
)
from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.quota_arithmetic import (
    available_from,
    find_overflow,
    find_server_overflow,
    sum_server_limits,
)
from billing_resources.services.resource_settings import ResourceSettingsService
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

logger = get_logger(__name__)


class ResourceQuotaManager:
    """
    Resource Quota Manager computes and enforces per-user quotas.

    Responsibilities:
    - Resolve a user's limits, falling back to the configured defaults
    - Derive used resources from the limits assigned to the user's servers
    - Report available resources and overflow
    - Apply balance changes through the store
    - Validate and apply server resource edits

    Used resources are the sum of what each server is configured with, not
    live telemetry. A limit of 0 means unlimited throughout.
    """

    def __init__(
        self,
        store: UserResourcesStore,
        panel: PanelRepository,
        resource_settings: ResourceSettingsService
    ):
        """
        Initialize Resource Quota Manager.

        Args:
            store: Persistence for quota records
            panel: Users, servers and their child entities
            resource_settings: Default and maximum resources
        """
        self.store = store
        self.panel = panel
        self.resource_settings = resource_settings
        self.validator = ServerResourceValidator(panel)
        self.logger = get_logger(__name__)

    # ========================================================================
    # Limits
    # ========================================================================

    async def get_limits_or_default(self, user_id: int) -> QuotaRecord:
        """
        The user's record, or the configured defaults if there is none.

        Never creates a row. Always returns all seven fields.
        """
        record = await self.store.get_by_user(user_id)
        if record is not None:
            return record

        defaults = await self.resource_settings.get_default_resources()
        return QuotaRecord(**defaults.resources())

    async def ensure_user_resources(self, user_id: int) -> Optional[QuotaRecord]:
        return await self.store.ensure_for_user(user_id)

    # ========================================================================
    # Usage accounting
    # ========================================================================

    async def calculate_used(
        self,
        user_id: int,
        exclude_server_ids: Optional[Iterable[int]] = None
    ) -> ResourceVector:
        """
        Sum of the limits assigned to the user's servers.

        Args:
            user_id: Owner whose servers are summed
            exclude_server_ids: Servers to leave out, typically the one being edited

        Returns:
            ResourceVector where server_limit is the number of servers counted
        """
        servers = await self.panel.get_servers_by_owner(user_id)
        return sum_server_limits(servers, exclude_server_ids)

    async def calculate_available(
        self,
        user_id: int,
        exclude_server_ids: Optional[Iterable[int]] = None
    ) -> ResourceVector:
        limits = await self.get_limits_or_default(user_id)
        used = await self.calculate_used(user_id, exclude_server_ids)
        return available_from(limits, used)

    async def check_overflow(self, user_id: int) -> OverflowReport:
        """Fields where total usage is above a non-zero limit"""
        limits = await self.get_limits_or_default(user_id)
        used = await self.calculate_used(user_id)
        return find_overflow(limits, used)

    async def check_server_overflow(self, user_id: int, server: Any) -> OverflowReport:
        """Fields where this server alone is above the user's total limit"""
        limits = await self.get_limits_or_default(user_id)
        return find_server_overflow(limits, server)

    # ========================================================================
    # Balance helpers
    # ========================================================================

    async def add_resource(self, user_id: int, resource_type: str, amount: int) -> OperationResult:
        if amount <= 0:
            return OperationResult.fail(QuotaStatus.INVALID, "Amount must be greater than 0")
        return await self.store.adjust_for_user(user_id, resource_type, amount)

    async def remove_resource(self, user_id: int, resource_type: str, amount: int) -> OperationResult:
        if amount <= 0:
            return OperationResult.fail(QuotaStatus.INVALID, "Amount must be greater than 0")
        return await self.store.adjust_for_user(user_id, resource_type, -amount)

    async def set_resource(self, user_id: int, resource_type: str, value: int) -> OperationResult:
        """
        Set one field to an absolute value.

        Written under the row lock, so a concurrent add/remove lands either
        before or after it and the requested value is never shifted.
        """
        if not is_resource_type(resource_type):
            return OperationResult.fail(QuotaStatus.INVALID, f"Invalid resource type: {resource_type}")
        if value < 0:
            return OperationResult.fail(QuotaStatus.INVALID, "Value cannot be negative")
        if await self.resource_settings.exceeds_max_limit(resource_type, value):
            max_limit = await self.resource_settings.get_max_limit(resource_type)
            return OperationResult.fail(
                QuotaStatus.EXCEEDS_MAX,
                f"{resource_type} = {value} exceeds max limit {max_limit}"
            )

        return await self.store.update_for_user(user_id, {resource_type: value})

    async def update_user_resources(self, user_id: int, fields: Dict[str, Any]) -> OperationResult:
        return await self.store.update_for_user(user_id, fields)

    async def has_sufficient_resource(self, user_id: int, resource_type: str, amount: int) -> bool:
        return await self.store.get_resource(user_id, resource_type) >= amount

    async def would_exceed_max_limit(self, resource_type: str, value: int) -> bool:
        return await self.resource_settings.exceeds_max_limit(resource_type, value)

    async def has_reached_max_limit(self, user_id: int, resource_type: str) -> bool:
        """True if the user's value is at or above a non-zero maximum"""
        max_limit = await self.resource_settings.get_max_limit(resource_type)
        if max_limit == 0:
            return False
        return await self.store.get_resource(user_id, resource_type) >= max_limit

    async def get_max_limit(self, resource_type: str) -> int:
        return await self.resource_settings.get_max_limit(resource_type)

    # ========================================================================
    # Views
    # ========================================================================

    async def get_resource_summary(self, user_id: int) -> Optional[ResourceSummary]:
        """Limits, used and max limits; None if the record cannot be ensured"""
        if await self.ensure_user_resources(user_id) is None:
            return None

        return ResourceSummary(
            limits=await self.get_limits_or_default(user_id),
            used=await self.calculate_used(user_id),
            max_limits=await self.resource_settings.get_max_resources(),
        )

    async def get_servers_overview(self, user_id: int) -> ServersOverview:
        """Each server with its live child counts, plus aggregate limits"""
        servers = await self.panel.get_servers_by_owner(user_id)
        limits = await self.get_limits_or_default(user_id)
        used = sum_server_limits(servers)

        snapshots = []
        for server in servers:
            snapshots.append(ServerUsage(
                id=server.id,
                name=server.name or "",
                uuid=server.uuid or "",
                uuid_short=server.uuid_short or "",
                **ServerResources.model_validate(server).model_dump(),
                databases=await self.panel.count_databases(server.id),
                backups=await self.panel.count_backups(server.id),
                allocations=await self.panel.count_allocations(server.id),
            ))

        return ServersOverview(
            servers=snapshots,
            limits=limits,
            used=used,
            available=available_from(limits, used),
        )

    async def get_server_resources(
        self,
        user_id: int,
        server: ServerModel
    ) -> Optional[ServerResourcesView]:
        """
        Everything needed to edit one server.

        used and available_for_edit leave this server out; total_used and
        available include it. None if the record cannot be ensured.
        """
        # Snapshot first: a lost creation race in ensure rolls the session back
        info = ServerInfo(
            id=server.id,
            name=server.name or "",
            uuid=server.uuid or "",
            resources=ServerResources.model_validate(server),
        )

        if await self.ensure_user_resources(user_id) is None:
            return None

        limits = await self.get_limits_or_default(user_id)
        servers = await self.panel.get_servers_by_owner(user_id)
        used = sum_server_limits(servers, [info.id])
        total_used = sum_server_limits(servers)

        return ServerResourcesView(
            server=info,
            available=available_from(limits, total_used),
            available_for_edit=available_from(limits, used),
            limits=limits,
            used=used,
            total_used=total_used,
            server_overflow=find_server_overflow(limits, info.resources),
            total_overflow=find_overflow(limits, total_used),
        )

    # ========================================================================
    # Server resource edits
    # ========================================================================

    async def update_server_resources(
        self,
        user_id: int,
        server: ServerModel,
        changes: Dict[str, Any]
    ) -> ServerResourceUpdateResult:
        """
        Validate and apply a change to one server's resources.

        A user already over any limit cannot change anything until usage is
        reduced. Otherwise every provided field is validated against the
        quota left by the user's other servers, and the server row is
        written in one statement only if all of them pass.
        """
        server_id = server.id

        if await self.ensure_user_resources(user_id) is None:
            return self._edit_result(ServerResourceUpdateResult(
                success=False,
                status=ServerUpdateStatus.STORAGE_ERROR,
                server_id=server_id,
                message="Failed to load user resources",
            ))

        overflow = await self.check_overflow(user_id)
        if overflow.has_overflow:
            self.logger.warning(
                "server_resource_edit_blocked_by_overflow",
                user_id=user_id,
                server_id=server_id,
                overflow=overflow.overflow_details
            )
            return self._edit_result(ServerResourceUpdateResult(
                success=False,
                status=ServerUpdateStatus.OVERFLOW,
                server_id=server_id,
                overflow_details=overflow.overflow_details,
            ))

        limits = await self.get_limits_or_default(user_id)
        used = await self.calculate_used(user_id, [server_id])
        validation = await self.validator.validate(
            server_id,
            changes,
            limits=limits,
            used_by_others=used,
            available=available_from(limits, used),
        )

        if not validation.valid:
            self.logger.info(
                "server_resource_edit_rejected",
                user_id=user_id,
                server_id=server_id,
                errors=validation.errors
            )
            return self._edit_result(ServerResourceUpdateResult(
                success=False,
                status=ServerUpdateStatus.VALIDATION_ERROR,
                server_id=server_id,
                errors=validation.errors,
                message="Validation failed",
            ))

        if not validation.accepted:
            return self._edit_result(ServerResourceUpdateResult(
                success=False,
                status=ServerUpdateStatus.NO_UPDATES,
                server_id=server_id,
                message="No fields to update",
            ))

        try:
            written = await self.panel.update_server_fields(server_id, validation.accepted)
        except SQLAlchemyError as e:
            await self.panel.db_session.rollback()
            self.logger.error(
                "server_resource_edit_failed",
                user_id=user_id,
                server_id=server_id,
                error=str(e),
                exc_info=True
            )
            written = False

        if not written:
            return self._edit_result(ServerResourceUpdateResult(
                success=False,
                status=ServerUpdateStatus.STORAGE_ERROR,
                server_id=server_id,
                message="Failed to update server resources",
            ))

        self.logger.info(
            "server_resources_updated",
            user_id=user_id,
            server_id=server_id,
            updated=validation.accepted
        )
        return self._edit_result(ServerResourceUpdateResult(
            success=True,
            status=ServerUpdateStatus.UPDATED,
            server_id=server_id,
            updated=validation.accepted,
        ))

    @staticmethod
    def _edit_result(result: ServerResourceUpdateResult) -> ServerResourceUpdateResult:
        track_server_resource_edit(result.status.value)
        return result
