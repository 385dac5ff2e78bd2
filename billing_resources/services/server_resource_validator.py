"""Server Resource Validator

Checks a proposed change to one server's resources against the owner's
quota. Every provided field is validated and all messages are collected,
so one rejected request reports every problem at once.

Per-field rules, in order (first failure wins for that field):
- floor: memory, cpu, disk and allocation_limit must be >= 1;
  database_limit and backup_limit must be >= 0
- child count: database/backup/allocation limits cannot drop below the
  number of databases/backups/allocations the server already has
- total limit: the value alone cannot exceed the user's limit
- remaining quota: other servers' usage plus the value cannot exceed it

A limit of 0 is unlimited and skips the last two checks.
"""

import enum
from typing import Any, Dict, List, NamedTuple, Optional
from pydantic import BaseModel, Field

from billing_resources.schemas.resources import ResourceVector
from billing_resources.services.panel_repository import PanelRepository


class _FieldRule(NamedTuple):
    field: str
    quota_field: str
    label: str
    unit: str
    minimum: int
    child: Optional[str]


_RULES = (
    _FieldRule("memory", "memory_limit", "Memory", " MB", 1, None),
    _FieldRule("cpu", "cpu_limit", "CPU", "%", 1, None),
    _FieldRule("disk", "disk_limit", "Disk", " MB", 1, None),
    _FieldRule("database_limit", "database_limit", "Database limit", "", 0, "databases"),
    _FieldRule("backup_limit", "backup_limit", "Backup limit", "", 0, "backups"),
    _FieldRule("allocation_limit", "allocation_limit", "Allocation limit", "", 1, "allocations"),
)


class ValidationResult(BaseModel):
    """Result of validating a server resource change"""
    valid: bool = Field(..., description="Whether validation passed")
    errors: List[str] = Field(default_factory=list, description="One message per rejected field")
    accepted: Dict[str, int] = Field(
        default_factory=dict,
        description="Fields that passed, ready to write"
    )


class ServerUpdateStatus(str, enum.Enum):
    UPDATED = "updated"
    VALIDATION_ERROR = "validation_error"
    OVERFLOW = "overflow"
    NO_UPDATES = "no_updates"
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"


class ServerResourceUpdateResult(BaseModel):
    """Outcome of a server resource edit"""
    success: bool
    status: ServerUpdateStatus
    server_id: int
    updated: Dict[str, int] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)
    overflow_details: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.success


class ServerResourceValidator:
    """
    Validates server resource changes for the edit flow.

    Child entity counts are read from the panel only for the fields that
    need them.
    """

    def __init__(self, panel: PanelRepository):
        self.panel = panel

    async def validate(
        self,
        server_id: int,
        changes: Dict[str, Any],
        limits: ResourceVector,
        used_by_others: ResourceVector,
        available: ResourceVector
    ) -> ValidationResult:
        """
        Validate every provided field of a change set.

        Args:
            server_id: Server being edited
            changes: New values keyed by server column; None values are skipped
            limits: The owner's quota
            used_by_others: Usage of the owner's other servers
            available: What is left for this server given the others

        Returns:
            ValidationResult with all error messages and the accepted fields
        """
        errors: List[str] = []
        accepted: Dict[str, int] = {}

        for rule in _RULES:
            if changes.get(rule.field) is None:
                continue

            value = int(changes[rule.field])
            error = await self._check_field(
                rule,
                value,
                server_id,
                limits.get(rule.quota_field),
                used_by_others.get(rule.quota_field),
                available.get(rule.quota_field),
            )
            if error:
                errors.append(error)
            else:
                accepted[rule.field] = value

        return ValidationResult(valid=not errors, errors=errors, accepted=accepted)

    async def _check_field(
        self,
        rule: _FieldRule,
        value: int,
        server_id: int,
        limit: int,
        used: int,
        available: int
    ) -> Optional[str]:
        if value < rule.minimum:
            if rule.minimum == 0:
                return f"{rule.label} cannot be negative"
            return f"{rule.label} must be at least {rule.minimum}{rule.unit}"

        if rule.child is not None:
            current = await self._child_count(rule.child, server_id)
            if value < current:
                return f"{rule.label} cannot be less than current {rule.child} ({current})"

        if limit > 0 and value > limit:
            return f"{rule.label} exceeds your total limit. Limit: {limit}{rule.unit}"

        if limit > 0 and used + value > limit:
            return (
                f"{rule.label} would exceed your total limit. "
                f"Available: {available}{rule.unit} (other servers use {used}{rule.unit})"
            )

        return None

    async def _child_count(self, child: str, server_id: int) -> int:
        if child == "databases":
            return await self.panel.count_databases(server_id)
        if child == "backups":
            return await self.panel.count_backups(server_id)
        return await self.panel.count_allocations(server_id)
