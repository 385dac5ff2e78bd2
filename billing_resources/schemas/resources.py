"""Pydantic schemas for resource vectors, quota records and their views"""

from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


RESOURCE_TYPES = (
    "memory_limit",
    "cpu_limit",
    "disk_limit",
    "server_limit",
    "database_limit",
    "backup_limit",
    "allocation_limit",
)

# Per-server column -> user quota field it is charged against.
# server_limit has no per-server column, it counts servers.
SERVER_RESOURCE_FIELDS = {
    "memory": "memory_limit",
    "cpu": "cpu_limit",
    "disk": "disk_limit",
    "database_limit": "database_limit",
    "backup_limit": "backup_limit",
    "allocation_limit": "allocation_limit",
}

PER_SERVER_RESOURCE_TYPES = tuple(SERVER_RESOURCE_FIELDS.values())


def is_resource_type(resource_type: str) -> bool:
    """True if the name is one of the seven quota fields"""
    return resource_type in RESOURCE_TYPES


class ResourceVector(BaseModel):
    """Fixed set of the seven quota fields"""
    memory_limit: int = Field(default=0, description="Memory in MB")
    cpu_limit: int = Field(default=0, description="CPU in percent, 100 = one core")
    disk_limit: int = Field(default=0, description="Disk in MB")
    server_limit: int = Field(default=0, description="Number of servers")
    database_limit: int = Field(default=0, description="Number of databases")
    backup_limit: int = Field(default=0, description="Number of backups")
    allocation_limit: int = Field(default=0, description="Number of allocations")

    def get(self, resource_type: str) -> int:
        """Value of one field, 0 for unknown names"""
        if not is_resource_type(resource_type):
            return 0
        return getattr(self, resource_type)

    def resources(self) -> Dict[str, int]:
        """The seven fields only, even on subclasses"""
        return {resource_type: getattr(self, resource_type) for resource_type in RESOURCE_TYPES}


class QuotaRecord(ResourceVector):
    """
    A user's quota limits.

    id and user_id are None when the values are defaults for a user with
    no stored record.
    """
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ServerResources(BaseModel):
    """The six resource columns a server carries"""
    model_config = ConfigDict(from_attributes=True)

    memory: int = 0
    cpu: int = 0
    disk: int = 0
    database_limit: int = 0
    backup_limit: int = 0
    allocation_limit: int = 0


class ServerUsage(ServerResources):
    """Snapshot of one server: its limits plus live child entity counts"""
    id: int
    name: str = ""
    uuid: str = ""
    uuid_short: str = ""
    databases: int = 0
    backups: int = 0
    allocations: int = 0


class OverflowReport(BaseModel):
    """
    Fields whose value exceeds a non-zero limit.

    For aggregate reports each detail is {"used", "limit"}; for a single
    server it is {"server_value", "limit"}.
    """
    has_overflow: bool = False
    overflow_details: Dict[str, Dict[str, int]] = Field(default_factory=dict)


class QuotaUpdate(BaseModel):
    """Partial update of a user's quota limits"""
    model_config = ConfigDict(extra="ignore")

    memory_limit: Optional[int] = Field(None, ge=0)
    cpu_limit: Optional[int] = Field(None, ge=0)
    disk_limit: Optional[int] = Field(None, ge=0)
    server_limit: Optional[int] = Field(None, ge=0)
    database_limit: Optional[int] = Field(None, ge=0)
    backup_limit: Optional[int] = Field(None, ge=0)
    allocation_limit: Optional[int] = Field(None, ge=0)

    def to_changes(self) -> Dict[str, int]:
        return self.model_dump(exclude_none=True)


class ServerResourceUpdate(BaseModel):
    """Partial update of a server's resources, floors are checked by the engine"""
    model_config = ConfigDict(extra="ignore")

    memory: Optional[int] = None
    cpu: Optional[int] = None
    disk: Optional[int] = None
    database_limit: Optional[int] = None
    backup_limit: Optional[int] = None
    allocation_limit: Optional[int] = None

    def to_changes(self) -> Dict[str, int]:
        return self.model_dump(exclude_none=True)


class ResourceSettings(BaseModel):
    """Default quota for new users and the per-field hard ceiling"""
    default_resources: ResourceVector
    max_resources: ResourceVector


class ResourceSettingsUpdate(BaseModel):
    """Either vector may be omitted; omitted fields keep their stored value"""
    default_resources: Optional[QuotaUpdate] = None
    max_resources: Optional[QuotaUpdate] = None


class ResourceSummary(BaseModel):
    """A user's limits, what their servers use and the configured maximums"""
    limits: QuotaRecord
    used: ResourceVector
    max_limits: ResourceVector


class ServersOverview(BaseModel):
    """A user's servers with aggregate limits, used and available"""
    servers: List[ServerUsage]
    limits: QuotaRecord
    used: ResourceVector
    available: ResourceVector


class ServerInfo(BaseModel):
    id: int
    name: str = ""
    uuid: str = ""
    resources: ServerResources


class ServerResourcesView(BaseModel):
    """
    Everything a client needs to edit one server's resources.

    available is what is left after every server including this one;
    available_for_edit is what this server may take given the others.
    """
    server: ServerInfo
    available: ResourceVector
    available_for_edit: ResourceVector
    limits: QuotaRecord
    used: ResourceVector
    total_used: ResourceVector
    server_overflow: OverflowReport
    total_overflow: OverflowReport


class ServerResourceUpdateResponse(BaseModel):
    server_id: int
    updated: Dict[str, int]


class ResourceValue(BaseModel):
    resource_type: str
    value: int


class UserWithResources(BaseModel):
    """Admin listing row"""
    id: int
    uuid: str
    username: str
    email: str
    resources: QuotaRecord


class UserCounts(BaseModel):
    total: int
    with_resources: int
    without_resources: int


class ResourceStatistics(BaseModel):
    """Totals and averages across every stored quota record"""
    users: UserCounts
    totals: ResourceVector
    averages: Dict[str, float]
