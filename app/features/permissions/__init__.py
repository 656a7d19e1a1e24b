"""
Permission management feature module.

Implements organization-scoped Role-Based Access Control for the CRM:
role resolution, permission resolution, sales-manager team scope, and
the resource read/modify/delete policy built on them.
"""
from app.features.permissions.context import OrganizationContext, get_context
from app.features.permissions.policy import (
    can_delete_resource,
    can_modify_resource,
    can_read_resource,
    get_visible_resources,
)
from app.features.permissions.resolver import (
    get_team_member_ids,
    get_user_permissions,
    get_user_role,
    has_all_permissions,
    has_any_permission,
    has_permission,
)
from app.features.permissions.storage import AuthorizationStore

__all__ = [
    "AuthorizationStore",
    "OrganizationContext",
    "can_delete_resource",
    "can_modify_resource",
    "can_read_resource",
    "get_context",
    "get_team_member_ids",
    "get_user_permissions",
    "get_user_role",
    "get_visible_resources",
    "has_all_permissions",
    "has_any_permission",
    "has_permission",
]
