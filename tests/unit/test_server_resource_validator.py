"""Unit tests for the Server Resource Validator"""

import pytest

from billing_resources.schemas.resources import ResourceVector
from billing_resources.services.server_resource_validator import ServerResourceValidator


LIMITS = ResourceVector(
    memory_limit=2048,
    cpu_limit=100,
    disk_limit=4096,
    server_limit=1,
    database_limit=3,
    backup_limit=5,
    allocation_limit=5,
)


@pytest.fixture
def validator(panel):
    return ServerResourceValidator(panel)


@pytest.mark.asyncio
async def test_accepts_values_within_quota(validator):
    result = await validator.validate(
        1, {"memory": 2048, "cpu": 50}, LIMITS, ResourceVector(), LIMITS
    )

    assert result.valid
    assert result.errors == []
    assert result.accepted == {"memory": 2048, "cpu": 50}


@pytest.mark.asyncio
async def test_none_values_are_skipped(validator):
    result = await validator.validate(1, {"memory": None}, LIMITS, ResourceVector(), LIMITS)

    assert result.valid
    assert result.accepted == {}


@pytest.mark.asyncio
async def test_floor_messages(validator):
    result = await validator.validate(
        1,
        {"memory": 0, "cpu": 0, "backup_limit": -1},
        LIMITS,
        ResourceVector(),
        LIMITS,
    )

    assert not result.valid
    assert result.errors == [
        "Memory must be at least 1 MB",
        "CPU must be at least 1%",
        "Backup limit cannot be negative",
    ]


@pytest.mark.asyncio
async def test_value_above_total_limit(validator):
    result = await validator.validate(1, {"disk": 5000}, LIMITS, ResourceVector(), LIMITS)

    assert result.errors == ["Disk exceeds your total limit. Limit: 4096 MB"]


@pytest.mark.asyncio
async def test_value_above_remaining_quota(validator):
    used = ResourceVector(memory_limit=1536)
    available = ResourceVector(memory_limit=512)

    result = await validator.validate(1, {"memory": 1024}, LIMITS, used, available)

    assert result.errors == [
        "Memory would exceed your total limit. Available: 512 MB (other servers use 1536 MB)"
    ]


@pytest.mark.asyncio
async def test_zero_limit_is_unlimited(validator):
    limits = LIMITS.model_copy(update={"memory_limit": 0})

    result = await validator.validate(
        1, {"memory": 10 ** 6}, limits, ResourceVector(memory_limit=10 ** 6), ResourceVector()
    )

    assert result.valid


@pytest.mark.asyncio
async def test_child_count_floor(validator, make_user, make_server, add_children):
    user = await make_user()
    server = await make_server(user, database_limit=3, allocation_limit=2)
    await add_children(server, databases=2, allocations=2)

    result = await validator.validate(
        server.id,
        {"database_limit": 1, "allocation_limit": 2},
        LIMITS,
        ResourceVector(),
        LIMITS,
    )

    assert result.errors == ["Database limit cannot be less than current databases (2)"]
    assert result.accepted == {"allocation_limit": 2}
