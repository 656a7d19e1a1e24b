"""
Reference data for the permission system.

These tables are the source of truth for the system roles and permissions
seeded into the database (see seed.py). They are immutable at runtime;
organization-specific custom roles live only in the database.
"""
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class RoleName(str, Enum):
    """Closed set of system role names."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    SALES_MANAGER = "SALES_MANAGER"
    SALES_REP = "SALES_REP"
    VIEWER = "VIEWER"


# Plain-string aliases used in comparisons against resolved role names
OWNER = RoleName.OWNER.value
ADMIN = RoleName.ADMIN.value
SALES_MANAGER = RoleName.SALES_MANAGER.value
SALES_REP = RoleName.SALES_REP.value
VIEWER = RoleName.VIEWER.value

SYSTEM_ROLE_NAMES = frozenset(role.value for role in RoleName)


@dataclass(frozen=True)
class PermissionDefinition:
    key: str
    resource: str
    action: str
    description: str


@dataclass(frozen=True)
class RoleDefinition:
    name: str
    description: str
    permissions: tuple[str, ...]


def _permission(key: str, description: str) -> PermissionDefinition:
    resource, _, action = key.partition(".")
    return PermissionDefinition(key=key, resource=resource, action=action, description=description)


SYSTEM_PERMISSIONS: tuple[PermissionDefinition, ...] = (
    # Leads
    _permission("leads.read", "View leads"),
    _permission("leads.read_own", "View own assigned leads only"),
    _permission("leads.write", "Create and edit leads"),
    _permission("leads.write_own", "Edit own assigned leads only"),
    _permission("leads.delete", "Delete leads"),
    _permission("leads.assign", "Assign leads to team members"),

    # Contacts
    _permission("contacts.read", "View contacts"),
    _permission("contacts.write", "Create and edit contacts"),
    _permission("contacts.delete", "Delete contacts"),

    # Companies
    _permission("companies.read", "View companies"),
    _permission("companies.write", "Create and edit companies"),
    _permission("companies.delete", "Delete companies"),

    # Activities
    _permission("activities.read", "View activities"),
    _permission("activities.write", "Create activities"),
    _permission("activities.write_own", "Create own activities only"),

    # Emails
    _permission("emails.read", "View all emails"),
    _permission("emails.read_own", "View own emails only"),
    _permission("emails.send", "Send emails"),

    # Workflows
    _permission("workflows.read", "View workflows"),
    _permission("workflows.write", "Create and edit workflows"),
    _permission("workflows.delete", "Delete workflows"),

    # Members
    _permission("members.read", "View team members"),
    _permission("members.invite", "Invite new members"),
    _permission("members.manage", "Manage member roles and permissions"),
    _permission("members.remove", "Remove team members"),

    # Organization
    _permission("organization.read", "View organization settings"),
    _permission("organization.write", "Edit organization settings"),

    # Roles
    _permission("roles.read", "View roles and permissions"),
    _permission("roles.write", "Create and edit custom roles"),
    _permission("roles.delete", "Delete custom roles"),
)


SYSTEM_ROLES: tuple[RoleDefinition, ...] = (
    RoleDefinition(
        name=OWNER,
        description="Organization owner with full access to everything",
        permissions=(
            "leads.read", "leads.write", "leads.delete", "leads.assign",
            "contacts.read", "contacts.write", "contacts.delete",
            "companies.read", "companies.write", "companies.delete",
            "activities.read", "activities.write",
            "emails.read", "emails.send",
            "workflows.read", "workflows.write", "workflows.delete",
            "members.read", "members.invite", "members.manage", "members.remove",
            "organization.read", "organization.write",
            "roles.read", "roles.write", "roles.delete",
        ),
    ),
    RoleDefinition(
        name=ADMIN,
        description="Administrator with full operational access",
        permissions=(
            "leads.read", "leads.write", "leads.delete", "leads.assign",
            "contacts.read", "contacts.write", "contacts.delete",
            "companies.read", "companies.write", "companies.delete",
            "activities.read", "activities.write",
            "emails.read", "emails.send",
            "workflows.read", "workflows.write", "workflows.delete",
            "members.read", "members.invite", "members.manage",
            "organization.read",
            "roles.read",
        ),
    ),
    RoleDefinition(
        name=SALES_MANAGER,
        description="Sales manager with team oversight",
        permissions=(
            "leads.read", "leads.write", "leads.assign",
            "contacts.read", "contacts.write",
            "companies.read", "companies.write",
            "activities.read", "activities.write",
            "emails.read", "emails.send",
            "workflows.read",
            "members.read",
        ),
    ),
    RoleDefinition(
        name=SALES_REP,
        description="Sales representative with limited access",
        permissions=(
            "leads.read_own", "leads.write_own",
            "contacts.read",
            "companies.read",
            "activities.write_own",
            "emails.read_own", "emails.send",
        ),
    ),
    RoleDefinition(
        name=VIEWER,
        description="Read-only access to sales data",
        permissions=(
            "leads.read",
            "contacts.read",
            "companies.read",
            "activities.read",
        ),
    ),
)


PERMISSION_REGISTRY = MappingProxyType({definition.key: definition for definition in SYSTEM_PERMISSIONS})
ROLE_REGISTRY = MappingProxyType({definition.name: definition for definition in SYSTEM_ROLES})
