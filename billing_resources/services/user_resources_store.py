"""User Resources Store - CRUD and race-safe adjustment of per-user quota records"""

import enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from pydantic import BaseModel
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from billing_resources.core.config import settings
from billing_resources.core.logging_config import get_logger
from billing_resources.core.monitoring import track_quota_adjustment, track_quota_update
from billing_resources.models.user_resources import UserResourcesModel
from billing_resources.schemas.resources import (
    RESOURCE_TYPES,
    QuotaRecord,
    ResourceStatistics,
    ResourceVector,
    UserCounts,
    is_resource_type,
)
from billing_resources.services.panel_repository import PanelRepository
from billing_resources.services.quota_arithmetic import exceeds_limit
from billing_resources.services.resource_settings import ResourceSettingsService

logger = get_logger(__name__)


class QuotaStatus(str, enum.Enum):
    """Why a store operation succeeded or failed"""
    OK = "ok"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    EXCEEDS_MAX = "exceeds_max"
    INSUFFICIENT = "insufficient"
    CONFLICT = "conflict"
    STORAGE_ERROR = "storage_error"


class OperationResult(BaseModel):
    """
    Outcome of a store write.

    Truthiness follows success, so `if await store.adjust_for_user(...)`
    reads like a boolean while status still tells a missing user apart
    from a rejected value or a storage failure.
    """
    success: bool
    status: QuotaStatus
    message: Optional[str] = None
    record: Optional[QuotaRecord] = None

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls, record: Optional[QuotaRecord] = None) -> "OperationResult":
        return cls(success=True, status=QuotaStatus.OK, record=record)

    @classmethod
    def fail(cls, status: QuotaStatus, message: str) -> "OperationResult":
        return cls(success=False, status=status, message=message)


def whitelist_resources(data: Dict[str, Any]) -> Dict[str, int]:
    """
    Keep only the seven resource fields.

    id and user_id are dropped; non-numeric values become 0.
    """
    payload = {}
    for resource_type in RESOURCE_TYPES:
        if resource_type in data:
            payload[resource_type] = _coerce_int(data[resource_type])
    return payload


def _coerce_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return 0
    return 0


# A mutation returns the row to persist, or a failed result to abort with
RowMutation = Callable[
    [Optional[UserResourcesModel]],
    Awaitable[Union[UserResourcesModel, OperationResult]]
]


class UserResourcesStore:
    """
    Persistence for QuotaRecord rows, one per user.

    Responsibilities:
    - Lazy creation from the configured default resources
    - Bulk updates checked against the configured maximums
    - Signed delta adjustments that never go negative or above max
    - Listing and aggregate statistics for the admin views

    Writes that read the current value (update_for_user, adjust_for_user)
    lock the row with SELECT ... FOR UPDATE and are also guarded by the
    row's version counter, so a lost race is detected and retried from a
    fresh read even where the database ignores row locks.

    Missing users and rows are reported as None / NOT_FOUND. Storage
    failures are logged, rolled back and reported as STORAGE_ERROR.
    """

    def __init__(
        self,
        db_session: AsyncSession,
        resource_settings: ResourceSettingsService,
        panel: Optional[PanelRepository] = None,
        max_attempts: Optional[int] = None
    ):
        self.db_session = db_session
        self.resource_settings = resource_settings
        self.panel = panel or PanelRepository(db_session)
        self.max_attempts = max_attempts or settings.QUOTA_ADJUST_MAX_ATTEMPTS
        self.logger = get_logger(__name__)

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_by_user(self, user_id: int) -> Optional[QuotaRecord]:
        """Record for a user, None if the user or the row does not exist"""
        try:
            if not await self.panel.user_exists(user_id):
                return None
        except SQLAlchemyError as e:
            self.logger.error(
                "user_resources_read_failed",
                user_id=user_id,
                error=str(e),
                exc_info=True
            )
            return None
        return await self._record_for(user_id)

    async def get_by_id(self, record_id: int) -> Optional[QuotaRecord]:
        if record_id is None or record_id <= 0:
            return None
        try:
            stmt = (
                select(UserResourcesModel)
                .where(UserResourcesModel.id == record_id)
                .execution_options(populate_existing=True)
            )
            result = await self.db_session.execute(stmt)
            row = result.scalar_one_or_none()
            return QuotaRecord.model_validate(row) if row is not None else None
        except SQLAlchemyError as e:
            self.logger.error(
                "user_resources_read_failed",
                record_id=record_id,
                error=str(e),
                exc_info=True
            )
            return None

    async def get_resource(self, user_id: int, resource_type: str) -> int:
        """
        Stored value of one field.

        Falls back to the configured default without creating a row;
        0 for an unknown resource type.
        """
        if not is_resource_type(resource_type):
            return 0

        record = await self.get_by_user(user_id)
        if record is None:
            defaults = await self.resource_settings.get_default_resources()
            return defaults.get(resource_type)
        return record.get(resource_type)

    # ========================================================================
    # Creation
    # ========================================================================

    async def ensure_for_user(self, user_id: int) -> Optional[QuotaRecord]:
        """
        Existing record, or a new one seeded from the default resources.

        If another request inserts the row first, the unique constraint on
        user_id rejects this insert and the winner's row is returned.
        """
        if not await self.panel.user_exists(user_id):
            return None

        existing = await self._record_for(user_id)
        if existing is not None:
            return existing

        try:
            defaults = await self.resource_settings.get_default_resources()
            self.db_session.add(UserResourcesModel(user_id=user_id, **defaults.resources()))
            await self.db_session.commit()
            self.logger.info("user_resources_created", user_id=user_id, **defaults.resources())
        except IntegrityError:
            await self.db_session.rollback()
            self.logger.info("user_resources_create_race_lost", user_id=user_id)
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            self.logger.error(
                "user_resources_create_failed",
                user_id=user_id,
                error=str(e),
                exc_info=True
            )
            return None

        return await self._record_for(user_id)

    async def create(self, data: Dict[str, Any]) -> OperationResult:
        """
        Insert a record from raw data.

        Requires user_id, an existing user and no existing record for that
        user. Fields not given take the column defaults.
        """
        if data.get("user_id") is None:
            self.logger.error("user_resources_create_rejected", reason="missing user_id")
            return OperationResult.fail(QuotaStatus.INVALID, "Missing required field: user_id")

        user_id = _coerce_int(data["user_id"])
        if not await self.panel.user_exists(user_id):
            return OperationResult.fail(QuotaStatus.NOT_FOUND, f"User {user_id} not found")

        if await self.get_by_user(user_id) is not None:
            self.logger.error("user_resources_create_rejected", user_id=user_id, reason="already exists")
            return OperationResult.fail(
                QuotaStatus.CONFLICT,
                f"User resources already exist for user_id: {user_id}"
            )

        row = UserResourcesModel(user_id=user_id, **whitelist_resources(data))
        try:
            self.db_session.add(row)
            await self.db_session.commit()
        except IntegrityError:
            await self.db_session.rollback()
            return OperationResult.fail(
                QuotaStatus.CONFLICT,
                f"User resources already exist for user_id: {user_id}"
            )
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            self.logger.error(
                "user_resources_create_failed",
                user_id=user_id,
                error=str(e),
                exc_info=True
            )
            return OperationResult.fail(QuotaStatus.STORAGE_ERROR, "Failed to create user resources")

        track_quota_update("create", "success")
        return OperationResult.ok(QuotaRecord.model_validate(row))

    # ========================================================================
    # Updates
    # ========================================================================

    async def update_for_user(self, user_id: int, fields: Dict[str, Any]) -> OperationResult:
        """
        Set several fields of a user's record at once.

        Every new value is checked against the maximum for its field before
        the transaction starts. A missing row is created from the default
        resources merged with the update.
        """
        if not await self.panel.user_exists(user_id):
            return OperationResult.fail(QuotaStatus.NOT_FOUND, f"User {user_id} not found")

        payload = whitelist_resources(fields)
        if not payload:
            self.logger.error("user_resources_update_rejected", user_id=user_id, reason="no data to update")
            return OperationResult.fail(QuotaStatus.INVALID, "No resource fields to update")

        max_resources = await self.resource_settings.get_max_resources()
        over_max = [
            f"{resource_type} = {value} (max {max_resources.get(resource_type)})"
            for resource_type, value in payload.items()
            if exceeds_limit(max_resources.get(resource_type), value)
        ]
        if over_max:
            self.logger.warning("user_resources_update_exceeds_max", user_id=user_id, fields=over_max)
            track_quota_update("update", "exceeds_max")
            return OperationResult.fail(
                QuotaStatus.EXCEEDS_MAX,
                "Resource value exceeds max limit: " + ", ".join(over_max)
            )

        async def apply(row: Optional[UserResourcesModel]):
            if row is None:
                defaults = await self.resource_settings.get_default_resources()
                return UserResourcesModel(user_id=user_id, **{**defaults.resources(), **payload})
            for resource_type, value in payload.items():
                setattr(row, resource_type, value)
            return row

        result = await self._write_locked(user_id, "update", apply)
        track_quota_update("update", result.status.value)
        if result:
            self.logger.info("user_resources_updated", user_id=user_id, **payload)
        return result

    async def update_by_id(self, record_id: int, fields: Dict[str, Any]) -> OperationResult:
        """
        Administrative override by record ID.

        Same whitelist as update_for_user but no maximum check. Runs as a
        single UPDATE that also bumps the version counter.
        """
        if record_id is None or record_id <= 0:
            return OperationResult.fail(QuotaStatus.INVALID, "Invalid record id")

        payload = whitelist_resources(fields)
        if not payload:
            self.logger.error("user_resources_update_rejected", record_id=record_id, reason="no data to update")
            return OperationResult.fail(QuotaStatus.INVALID, "No resource fields to update")

        try:
            stmt = (
                update(UserResourcesModel)
                .where(UserResourcesModel.id == record_id)
                .values(**payload, version_id=UserResourcesModel.version_id + 1)
                .execution_options(synchronize_session=False)
            )
            result = await self.db_session.execute(stmt)
            await self.db_session.commit()
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            self.logger.error(
                "user_resources_update_failed",
                record_id=record_id,
                error=str(e),
                exc_info=True
            )
            track_quota_update("update_by_id", QuotaStatus.STORAGE_ERROR.value)
            return OperationResult.fail(QuotaStatus.STORAGE_ERROR, "Failed to update user resources")

        if result.rowcount == 0:
            track_quota_update("update_by_id", QuotaStatus.NOT_FOUND.value)
            return OperationResult.fail(QuotaStatus.NOT_FOUND, f"User resources {record_id} not found")

        track_quota_update("update_by_id", QuotaStatus.OK.value)
        self.logger.info("user_resources_updated_by_id", record_id=record_id, **payload)
        return OperationResult.ok(await self.get_by_id(record_id))

    async def adjust_for_user(self, user_id: int, resource_type: str, delta: int) -> OperationResult:
        """
        Atomically add a signed delta to one field.

        A missing row counts as holding the default value and is created on
        success. Fails with INSUFFICIENT if the result would be negative and
        with EXCEEDS_MAX if it would pass the configured maximum; the stored
        value is unchanged in both cases.
        """
        if not is_resource_type(resource_type):
            self.logger.error("invalid_resource_type", user_id=user_id, resource_type=resource_type)
            track_quota_adjustment("unknown", QuotaStatus.INVALID.value)
            return OperationResult.fail(QuotaStatus.INVALID, f"Invalid resource type: {resource_type}")

        if not await self.panel.user_exists(user_id):
            track_quota_adjustment(resource_type, QuotaStatus.NOT_FOUND.value)
            return OperationResult.fail(QuotaStatus.NOT_FOUND, f"User {user_id} not found")

        async def apply(row: Optional[UserResourcesModel]):
            defaults: Optional[ResourceVector] = None
            if row is None:
                defaults = await self.resource_settings.get_default_resources()
                current = defaults.get(resource_type)
            else:
                current = getattr(row, resource_type)

            new_value = current + delta
            if new_value < 0:
                return OperationResult.fail(
                    QuotaStatus.INSUFFICIENT,
                    f"Insufficient {resource_type}: have {current}, change {delta}"
                )

            max_limit = await self.resource_settings.get_max_limit(resource_type)
            if exceeds_limit(max_limit, new_value):
                return OperationResult.fail(
                    QuotaStatus.EXCEEDS_MAX,
                    f"{resource_type} would be {new_value}, max is {max_limit}"
                )

            if row is None:
                return UserResourcesModel(
                    user_id=user_id,
                    **{**defaults.resources(), resource_type: new_value}
                )
            setattr(row, resource_type, new_value)
            return row

        result = await self._write_locked(user_id, "adjust", apply)
        track_quota_adjustment(resource_type, result.status.value)

        if result:
            self.logger.info(
                "quota_adjusted",
                user_id=user_id,
                resource_type=resource_type,
                delta=delta,
                new_value=result.record.get(resource_type)
            )
        else:
            self.logger.warning(
                "quota_adjust_rejected",
                user_id=user_id,
                resource_type=resource_type,
                delta=delta,
                status=result.status.value,
                reason=result.message
            )
        return result

    # ========================================================================
    # Deletion
    # ========================================================================

    async def delete_for_user(self, user_id: int) -> OperationResult:
        if user_id is None or user_id <= 0:
            return OperationResult.fail(QuotaStatus.INVALID, "Invalid user id")
        return await self._delete(UserResourcesModel.user_id == user_id, user_id=user_id)

    async def delete_by_id(self, record_id: int) -> OperationResult:
        if record_id is None or record_id <= 0:
            return OperationResult.fail(QuotaStatus.INVALID, "Invalid record id")
        return await self._delete(UserResourcesModel.id == record_id, record_id=record_id)

    # ========================================================================
    # Listing and statistics
    # ========================================================================

    async def list_records(self, page: int = 1, limit: int = 50) -> List[QuotaRecord]:
        offset = (max(page, 1) - 1) * limit
        stmt = (
            select(UserResourcesModel)
            .order_by(UserResourcesModel.id)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db_session.execute(stmt)
        return [QuotaRecord.model_validate(row) for row in result.scalars().all()]

    async def count(self) -> int:
        result = await self.db_session.execute(select(func.count(UserResourcesModel.id)))
        return int(result.scalar_one())

    async def statistics(self) -> ResourceStatistics:
        """Totals and averages of every field across all records"""
        columns = [getattr(UserResourcesModel, resource_type) for resource_type in RESOURCE_TYPES]
        stmt = select(
            func.count(func.distinct(UserResourcesModel.user_id)),
            *[func.coalesce(func.sum(column), 0) for column in columns],
            *[func.coalesce(func.avg(column), 0) for column in columns],
        )
        row = (await self.db_session.execute(stmt)).one()

        with_resources = int(row[0])
        sums = row[1:1 + len(RESOURCE_TYPES)]
        averages = row[1 + len(RESOURCE_TYPES):]
        total_users = await self.panel.count_users()

        return ResourceStatistics(
            users=UserCounts(
                total=total_users,
                with_resources=with_resources,
                without_resources=max(0, total_users - with_resources),
            ),
            totals=ResourceVector(**{
                resource_type: int(value or 0)
                for resource_type, value in zip(RESOURCE_TYPES, sums)
            }),
            averages={
                resource_type: round(float(value or 0), 2)
                for resource_type, value in zip(RESOURCE_TYPES, averages)
            },
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    async def _fetch_row(self, user_id: int, lock: bool = False) -> Optional[UserResourcesModel]:
        stmt = (
            select(UserResourcesModel)
            .where(UserResourcesModel.user_id == user_id)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db_session.execute(stmt)
        return result.scalar_one_or_none()

    async def _record_for(self, user_id: int) -> Optional[QuotaRecord]:
        """Stored record of a user already known to exist"""
        try:
            row = await self._fetch_row(user_id)
        except SQLAlchemyError as e:
            self.logger.error(
                "user_resources_read_failed",
                user_id=user_id,
                error=str(e),
                exc_info=True
            )
            return None
        return QuotaRecord.model_validate(row) if row is not None else None

    async def _write_locked(
        self,
        user_id: int,
        operation: str,
        mutate: RowMutation
    ) -> OperationResult:
        """
        Lock, mutate and commit one user's row in a single transaction.

        A stale version or a duplicate insert means another writer got
        there first: roll back and start over from a fresh read, up to
        max_attempts times.

        A rejecting mutation leaves the row untouched, so the lock is
        released with a commit; unlike a rollback it does not expire the
        caller's loaded objects.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                row = await self._fetch_row(user_id, lock=True)
                outcome = await mutate(row)
                if isinstance(outcome, OperationResult):
                    await self.db_session.commit()
                    return outcome

                if row is None:
                    self.db_session.add(outcome)
                await self.db_session.commit()
                return OperationResult.ok(QuotaRecord.model_validate(outcome))

            except (StaleDataError, IntegrityError) as e:
                await self.db_session.rollback()
                self.logger.warning(
                    "user_resources_write_conflict",
                    user_id=user_id,
                    operation=operation,
                    attempt=attempt,
                    error=str(e)
                )
            except SQLAlchemyError as e:
                await self.db_session.rollback()
                self.logger.error(
                    "user_resources_write_failed",
                    user_id=user_id,
                    operation=operation,
                    error=str(e),
                    exc_info=True
                )
                return OperationResult.fail(QuotaStatus.STORAGE_ERROR, f"Failed to {operation} user resources")

        return OperationResult.fail(
            QuotaStatus.CONFLICT,
            f"Concurrent modification of user {user_id} resources, gave up after {self.max_attempts} attempts"
        )

    async def _delete(self, criterion, **context) -> OperationResult:
        try:
            result = await self.db_session.execute(
                delete(UserResourcesModel)
                .where(criterion)
                .execution_options(synchronize_session=False)
            )
            await self.db_session.commit()
        except SQLAlchemyError as e:
            await self.db_session.rollback()
            self.logger.error("user_resources_delete_failed", error=str(e), exc_info=True, **context)
            return OperationResult.fail(QuotaStatus.STORAGE_ERROR, "Failed to delete user resources")

        if result.rowcount == 0:
            return OperationResult.fail(QuotaStatus.NOT_FOUND, "User resources not found")

        self.logger.info("user_resources_deleted", **context)
        return OperationResult.ok()
