"""Unit tests for the user resources store"""

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError

from billing_resources.services.user_resources_store import (
    OperationResult,
    QuotaStatus,
    whitelist_resources,
)


class TestWhitelist:

    def test_drops_identity_and_unknown_fields(self):
        payload = whitelist_resources({
            "id": 5,
            "user_id": 9,
            "memory_limit": 1024,
            "gpu_limit": 1,
        })
        assert payload == {"memory_limit": 1024}

    def test_non_numeric_values_become_zero(self):
        payload = whitelist_resources({"cpu_limit": "abc", "disk_limit": None, "backup_limit": "12"})
        assert payload == {"cpu_limit": 0, "disk_limit": 0, "backup_limit": 12}


class TestOperationResult:

    def test_truthiness_follows_success(self):
        assert OperationResult.ok()
        assert not OperationResult.fail(QuotaStatus.NOT_FOUND, "missing")


class TestEnsureAndRead:
    """Lazy creation and reads"""

    @pytest.mark.asyncio
    async def test_unknown_user(self, store):
        assert await store.get_by_user(999) is None
        assert await store.ensure_for_user(999) is None

    @pytest.mark.asyncio
    async def test_no_record_until_ensured(self, store, make_user):
        user = await make_user()
        assert await store.get_by_user(user.id) is None

    @pytest.mark.asyncio
    async def test_ensure_seeds_from_defaults(self, store, resource_settings, make_user):
        await resource_settings.set_default_resources({"memory_limit": 512})
        user = await make_user()

        record = await store.ensure_for_user(user.id)

        assert record is not None
        assert record.user_id == user.id
        assert record.memory_limit == 512
        assert record.cpu_limit == 100

    @pytest.mark.asyncio
    async def test_ensure_is_idempotent(self, store, make_user):
        user = await make_user()

        first = await store.ensure_for_user(user.id)
        second = await store.ensure_for_user(user.id)

        assert first.id == second.id
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_ensure_checks_user_once(self, store, make_user):
        user = await make_user()
        user_id = user.id
        user_exists = AsyncMock(wraps=store.panel.user_exists)

        with patch.object(store.panel, "user_exists", user_exists):
            created = await store.ensure_for_user(user_id)
            assert user_exists.await_count == 1

            existing = await store.ensure_for_user(user_id)
            assert user_exists.await_count == 2

        assert created.id == existing.id

    @pytest.mark.asyncio
    async def test_get_by_id(self, store, make_user):
        user = await make_user()
        record = await store.ensure_for_user(user.id)

        assert (await store.get_by_id(record.id)).user_id == user.id
        assert await store.get_by_id(0) is None
        assert await store.get_by_id(12345) is None

    @pytest.mark.asyncio
    async def test_get_resource_falls_back_to_default_without_creating(self, store, make_user):
        user = await make_user()

        assert await store.get_resource(user.id, "disk_limit") == 4096
        assert await store.get_by_user(user.id) is None

    @pytest.mark.asyncio
    async def test_get_resource_unknown_type(self, store, make_user):
        user = await make_user()
        await store.ensure_for_user(user.id)

        assert await store.get_resource(user.id, "gpu_limit") == 0


class TestCreate:

    @pytest.mark.asyncio
    async def test_requires_user_id(self, store):
        result = await store.create({"memory_limit": 10})

        assert not result
        assert result.status == QuotaStatus.INVALID

    @pytest.mark.asyncio
    async def test_requires_existing_user(self, store):
        result = await store.create({"user_id": 404})
        assert result.status == QuotaStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_unspecified_fields_are_zero(self, store, make_user):
        user = await make_user()

        result = await store.create({"user_id": user.id, "memory_limit": 300})

        assert result
        assert result.record.memory_limit == 300
        assert result.record.cpu_limit == 0

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict(self, store, make_user):
        user = await make_user()
        await store.ensure_for_user(user.id)

        result = await store.create({"user_id": user.id})
        assert result.status == QuotaStatus.CONFLICT


class TestUpdate:

    @pytest.mark.asyncio
    async def test_update_existing_record(self, store, make_user):
        user = await make_user()
        await store.ensure_for_user(user.id)

        result = await store.update_for_user(user.id, {"memory_limit": 8192, "user_id": 77})

        assert result
        assert result.record.memory_limit == 8192
        assert result.record.user_id == user.id
        assert (await store.get_by_user(user.id)).memory_limit == 8192

    @pytest.mark.asyncio
    async def test_update_creates_from_defaults_merged_with_payload(self, store, make_user):
        user = await make_user()

        result = await store.update_for_user(user.id, {"server_limit": 4})

        assert result
        record = await store.get_by_user(user.id)
        assert record.server_limit == 4
        assert record.memory_limit == 2048

    @pytest.mark.asyncio
    async def test_empty_payload_rejected(self, store, make_user):
        user = await make_user()

        result = await store.update_for_user(user.id, {"id": 3})
        assert result.status == QuotaStatus.INVALID

    @pytest.mark.asyncio
    async def test_value_above_max_rejected(self, store, make_user):
        user = await make_user()
        await store.ensure_for_user(user.id)

        result = await store.update_for_user(user.id, {"server_limit": 51, "memory_limit": 1})

        assert result.status == QuotaStatus.EXCEEDS_MAX
        assert "server_limit" in result.message
        assert (await store.get_by_user(user.id)).memory_limit == 2048

    @pytest.mark.asyncio
    async def test_zero_max_is_unlimited(self, store, resource_settings, make_user):
        await resource_settings.set_max_resources({"disk_limit": 0})
        user = await make_user()

        result = await store.update_for_user(user.id, {"disk_limit": 10 ** 7})
        assert result

    @pytest.mark.asyncio
    async def test_unknown_user(self, store):
        result = await store.update_for_user(321, {"memory_limit": 1})
        assert result.status == QuotaStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_update_by_id_skips_max_check(self, store, make_user):
        user = await make_user()
        record = await store.ensure_for_user(user.id)

        result = await store.update_by_id(record.id, {"server_limit": 500})

        assert result
        assert result.record.server_limit == 500
        assert (await store.get_by_user(user.id)).server_limit == 500

    @pytest.mark.asyncio
    async def test_update_by_id_missing_record(self, store):
        result = await store.update_by_id(999, {"server_limit": 2})
        assert result.status == QuotaStatus.NOT_FOUND


class TestAdjust:
    """Signed delta adjustments"""

    @pytest.mark.asyncio
    async def test_add_then_remove_restores_value(self, store, make_user):
        user = await make_user()
        await store.ensure_for_user(user.id)

        assert await store.adjust_for_user(user.id, "database_limit", 4)
        assert await store.get_resource(user.id, "database_limit") == 7

        assert await store.adjust_for_user(user.id, "database_limit", -4)
        assert await store.get_resource(user.id, "database_limit") == 3

    @pytest.mark.asyncio
    async def test_missing_row_counts_as_default_and_is_created(self, store, make_user):
        user = await make_user()

        result = await store.adjust_for_user(user.id, "backup_limit", 2)

        assert result
        record = await store.get_by_user(user.id)
        assert record.backup_limit == 7
        assert record.memory_limit == 2048

    @pytest.mark.asyncio
    async def test_negative_result_is_insufficient(self, store, make_user):
        user = await make_user()
        user_id = user.id
        await store.ensure_for_user(user_id)

        result = await store.adjust_for_user(user_id, "server_limit", -2)

        assert result.status == QuotaStatus.INSUFFICIENT
        assert await store.get_resource(user_id, "server_limit") == 1

    @pytest.mark.asyncio
    async def test_above_max_is_rejected(self, store, make_user):
        user = await make_user()
        user_id = user.id
        await store.update_for_user(user_id, {"server_limit": 49})

        assert await store.adjust_for_user(user_id, "server_limit", 1)
        result = await store.adjust_for_user(user_id, "server_limit", 1)

        assert result.status == QuotaStatus.EXCEEDS_MAX
        assert await store.get_resource(user_id, "server_limit") == 50

    @pytest.mark.asyncio
    async def test_rejection_keeps_loaded_objects_usable(self, store, make_user, make_server):
        user = await make_user(username="keeper")
        server = await make_server(user, memory=256)
        await store.ensure_for_user(user.id)

        insufficient = await store.adjust_for_user(user.id, "server_limit", -2)
        over_max = await store.adjust_for_user(user.id, "server_limit", 100)

        assert insufficient.status == QuotaStatus.INSUFFICIENT
        assert over_max.status == QuotaStatus.EXCEEDS_MAX
        assert user.username == "keeper"
        assert server.memory == 256

    @pytest.mark.asyncio
    async def test_invalid_resource_type(self, store, make_user):
        user = await make_user()

        result = await store.adjust_for_user(user.id, "gpu_limit", 1)
        assert result.status == QuotaStatus.INVALID

    @pytest.mark.asyncio
    async def test_unknown_user(self, store):
        result = await store.adjust_for_user(888, "cpu_limit", 1)
        assert result.status == QuotaStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_adjust_bumps_version(self, store, db_session, make_user):
        from billing_resources.models.user_resources import UserResourcesModel

        user = await make_user()
        await store.ensure_for_user(user.id)
        await store.adjust_for_user(user.id, "cpu_limit", 10)

        row = await db_session.get(UserResourcesModel, (await store.get_by_user(user.id)).id)
        assert row.version_id == 2

    @pytest.mark.asyncio
    async def test_storage_error_is_reported(self, store, make_user, monkeypatch):
        user = await make_user()
        await store.ensure_for_user(user.id)

        async def broken_fetch(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        monkeypatch.setattr(store, "_fetch_row", broken_fetch)

        result = await store.adjust_for_user(user.id, "cpu_limit", 1)

        assert not result
        assert result.status == QuotaStatus.STORAGE_ERROR


class TestDeleteAndListing:

    @pytest.mark.asyncio
    async def test_delete_for_user(self, store, make_user):
        user = await make_user()
        await store.ensure_for_user(user.id)

        assert await store.delete_for_user(user.id)
        assert await store.get_by_user(user.id) is None
        assert (await store.delete_for_user(user.id)).status == QuotaStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_by_id(self, store, make_user):
        user = await make_user()
        record = await store.ensure_for_user(user.id)

        assert await store.delete_by_id(record.id)
        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_list_records_paginates(self, store, make_user):
        for _ in range(3):
            user = await make_user()
            await store.ensure_for_user(user.id)

        first_page = await store.list_records(page=1, limit=2)
        second_page = await store.list_records(page=2, limit=2)

        assert len(first_page) == 2
        assert len(second_page) == 1
        assert await store.count() == 3

    @pytest.mark.asyncio
    async def test_statistics(self, store, make_user):
        first = await make_user()
        second = await make_user()
        await make_user()
        await store.update_for_user(first.id, {"memory_limit": 1000})
        await store.update_for_user(second.id, {"memory_limit": 2001})

        stats = await store.statistics()

        assert stats.users.total == 3
        assert stats.users.with_resources == 2
        assert stats.users.without_resources == 1
        assert stats.totals.memory_limit == 3001
        assert stats.averages["memory_limit"] == 1500.5
        assert stats.totals.cpu_limit == 200
