"""
Resource visibility and mutation policy.

All ownership and assignment checks for governed resources (leads,
contacts, companies, ...) live here so every route applies the same rules.

A resource is anything exposing `organization_id`, `user_id` (creator)
and `assigned_to` (current owner of record), either as attributes or as
mapping keys. camelCase keys (`organizationId`, `userId`, `assignedTo`)
are accepted too.

Rules by role:

    role            read                      modify                    delete
    OWNER, ADMIN    all                       all                       all
    VIEWER          all                       never                     never
    SALES_MANAGER   creator or assignee       creator or assignee       creator in team
                    in team                   in team
    SALES_REP       creator or assignee       creator or assignee       never
                    is self                   is self
    anything else   never                     never                     never

A resource belonging to another organization is always refused.
"""
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from app.features.permissions.context import OrganizationContext
from app.features.permissions.registry import ADMIN, OWNER, SALES_MANAGER, SALES_REP, VIEWER


R = TypeVar("R")

_FULL_READ_ROLES = frozenset({OWNER, ADMIN, VIEWER})
_FULL_WRITE_ROLES = frozenset({OWNER, ADMIN})

_FIELD_ALIASES = {
    "organization_id": "organizationId",
    "user_id": "userId",
    "assigned_to": "assignedTo",
}


def _field(resource: Any, name: str) -> Any:
    alias = _FIELD_ALIASES[name]
    if isinstance(resource, Mapping):
        value = resource.get(name)
        return value if value is not None else resource.get(alias)
    value = getattr(resource, name, None)
    return value if value is not None else getattr(resource, alias, None)


def _in_organization(context: OrganizationContext, resource: Any) -> bool:
    organization_id = _field(resource, "organization_id")
    return organization_id is None or organization_id == context.organization_id


def _in_team_scope(context: OrganizationContext, user_id: str | None) -> bool:
    return bool(user_id) and user_id in (context.team_member_ids or ())


def _owned_or_assigned_in_scope(context: OrganizationContext, resource: Any) -> bool:
    return (
        _in_team_scope(context, _field(resource, "user_id"))
        or _in_team_scope(context, _field(resource, "assigned_to"))
    )


def _owned_or_assigned_to_self(context: OrganizationContext, resource: Any) -> bool:
    return context.user_id in (_field(resource, "user_id"), _field(resource, "assigned_to"))


def can_read_resource(context: OrganizationContext, resource: Any) -> bool:
    if not _in_organization(context, resource):
        return False

    role = context.role
    if role in _FULL_READ_ROLES:
        return True
    if role == SALES_MANAGER:
        return _owned_or_assigned_in_scope(context, resource)
    if role == SALES_REP:
        return _owned_or_assigned_to_self(context, resource)
    return False


def get_visible_resources(context: OrganizationContext, resources: Iterable[R]) -> list[R]:
    """Resources the context may read, in their original order."""
    return [resource for resource in resources if can_read_resource(context, resource)]


def can_modify_resource(context: OrganizationContext, resource: Any) -> bool:
    if not _in_organization(context, resource):
        return False

    role = context.role
    if role in _FULL_WRITE_ROLES:
        return True
    if role == SALES_MANAGER:
        return _owned_or_assigned_in_scope(context, resource)
    if role == SALES_REP:
        return _owned_or_assigned_to_self(context, resource)
    return False


def can_delete_resource(context: OrganizationContext, resource: Any) -> bool:
    """
    Stricter than can_modify_resource: reps never delete, and a manager
    may only delete what a team member created. Being assigned to a team
    member is not enough.
    """
    if not _in_organization(context, resource):
        return False

    role = context.role
    if role in _FULL_WRITE_ROLES:
        return True
    if role == SALES_MANAGER:
        return _in_team_scope(context, _field(resource, "user_id"))
    return False
