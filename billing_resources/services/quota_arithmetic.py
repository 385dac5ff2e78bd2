"""Pure quota arithmetic shared by the store and the accounting engine.

Nothing here touches the database. Limits use the convention that 0 means
unlimited, so comparisons always go through exceeds_limit().
"""

from typing import Any, Iterable, Mapping, Optional

from billing_resources.schemas.resources import (
    PER_SERVER_RESOURCE_TYPES,
    RESOURCE_TYPES,
    SERVER_RESOURCE_FIELDS,
    OverflowReport,
    ResourceVector,
)


def exceeds_limit(limit: int, value: int) -> bool:
    """True if value is above limit, where a limit of 0 is unlimited"""
    return limit > 0 and value > limit


def _field(server: Any, name: str) -> int:
    if isinstance(server, Mapping):
        value = server.get(name)
    else:
        value = getattr(server, name, None)
    return int(value or 0)


def server_id_of(server: Any) -> int:
    return _field(server, "id")


def server_resources(server: Any) -> ResourceVector:
    """
    One server's columns expressed as quota fields.

    server_limit stays 0: a server has no server count of its own.
    """
    return ResourceVector(**{
        quota_field: _field(server, server_field)
        for server_field, quota_field in SERVER_RESOURCE_FIELDS.items()
    })


def sum_server_limits(
    servers: Iterable[Any],
    exclude_server_ids: Optional[Iterable[int]] = None
) -> ResourceVector:
    """
    Used vector for a set of servers.

    Every per-server field is the sum of the configured limits on servers
    not in exclude_server_ids. server_limit is the number of servers left
    after dropping the excluded ones that are actually in the list.
    """
    excluded = set(exclude_server_ids or ())
    totals = {resource_type: 0 for resource_type in RESOURCE_TYPES}

    for server in servers:
        if server_id_of(server) in excluded:
            continue
        for server_field, quota_field in SERVER_RESOURCE_FIELDS.items():
            totals[quota_field] += _field(server, server_field)
        totals["server_limit"] += 1

    return ResourceVector(**totals)


def available_from(limits: ResourceVector, used: ResourceVector) -> ResourceVector:
    """max(0, limit - used) per field"""
    return ResourceVector(**{
        resource_type: max(0, limits.get(resource_type) - used.get(resource_type))
        for resource_type in RESOURCE_TYPES
    })


def find_overflow(limits: ResourceVector, used: ResourceVector) -> OverflowReport:
    """Aggregate overflow over all seven fields"""
    details = {}
    for resource_type in RESOURCE_TYPES:
        limit = limits.get(resource_type)
        used_value = used.get(resource_type)
        if exceeds_limit(limit, used_value):
            details[resource_type] = {"used": used_value, "limit": limit}
    return OverflowReport(has_overflow=bool(details), overflow_details=details)


def find_server_overflow(limits: ResourceVector, server: Any) -> OverflowReport:
    """Fields where a single server on its own is above the user's total limit"""
    values = server_resources(server)
    details = {}
    for resource_type in PER_SERVER_RESOURCE_TYPES:
        limit = limits.get(resource_type)
        server_value = values.get(resource_type)
        if exceeds_limit(limit, server_value):
            details[resource_type] = {"server_value": server_value, "limit": limit}
    return OverflowReport(has_overflow=bool(details), overflow_details=details)
