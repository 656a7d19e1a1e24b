"""
Role, permission and team-scope resolution.

Every function takes an AuthorizationStore and performs a short series of
read-only lookups. Resolution fails closed: a user without a relationship
to the organization has no role and an empty permission set. Storage
errors propagate unchanged.
"""
from collections.abc import Iterable

from app.features.organizations.models import TeamMember
from app.features.permissions.registry import OWNER, SALES_MANAGER
from app.features.permissions.storage import AuthorizationStore
from app.utils import get_logger


log = get_logger(__name__)


async def get_membership_role_name(store: AuthorizationStore, member: TeamMember) -> str | None:
    """
    Effective role name carried by a membership row.

    The referenced role's name when role_id resolves, otherwise the legacy
    bare role string as stored.
    """
    if member.role_id:
        role = await store.get_role(member.role_id)
        if role is not None:
            return role.name
    return member.role or None


async def is_owner_marker(store: AuthorizationStore, member: TeamMember) -> bool:
    role_name = await get_membership_role_name(store, member)
    return role_name is not None and role_name.upper() == OWNER


async def get_granted_role_name(store: AuthorizationStore, member: TeamMember) -> str | None:
    """
    Role a membership row actually grants.

    OWNER comes from Organization.owner_id only. A row whose effective
    role is OWNER (the creator's legacy "owner" marker, or anything
    written around add_team_member) grants nothing.
    """
    role_name = await get_membership_role_name(store, member)
    if role_name is not None and role_name.upper() == OWNER:
        return None
    return role_name


# ============================================================================
# Role resolution
# ============================================================================

async def get_user_role(store: AuthorizationStore, user_id: str, organization_id: str) -> str | None:
    """
    Resolve the user's role name in an organization.

    The organization owner is always OWNER, whatever membership rows say.
    Otherwise the role comes from the user's first team (oldest first) in
    the organization that has a membership row with a role. If the user
    holds different roles on several teams, that first team wins.

    Returns:
        Role name, or None when the user has no relationship to the organization
    """
    organization = await store.get_organization(organization_id)
    if organization is None:
        log.debug("Organization %s not found", organization_id)
        return None

    if organization.owner_id == user_id:
        return OWNER

    teams = await store.get_teams_for_user(user_id)
    for team in teams:
        if team.organization_id != organization_id:
            continue
        member = await store.get_team_member(team.id, user_id)
        if member is None:
            continue
        role_name = await get_granted_role_name(store, member)
        if role_name:
            return role_name

    log.debug("User %s has no role in org %s", user_id, organization_id)
    return None


# ============================================================================
# Permission resolution
# ============================================================================

async def get_role_permissions(
    store: AuthorizationStore,
    role_name: str,
    organization_id: str
) -> frozenset[str]:
    """Permission keys of a role, looked up by (organization, name)."""
    role = await store.get_role_by_name_and_org(role_name, organization_id)
    if role is None:
        log.debug("Role %r not defined for org %s", role_name, organization_id)
        return frozenset()
    return await store.get_role_permission_keys(role.id)


async def get_user_permissions(
    store: AuthorizationStore,
    user_id: str,
    organization_id: str
) -> frozenset[str]:
    """Permission keys granted to the user in the organization (empty if no role)."""
    role_name = await get_user_role(store, user_id, organization_id)
    if role_name is None:
        return frozenset()
    return await get_role_permissions(store, role_name, organization_id)


def grants(permissions: Iterable[str], permission_key: str) -> bool:
    return permission_key in permissions


def grants_any(permissions: Iterable[str], permission_keys: Iterable[str]) -> bool:
    granted = frozenset(permissions)
    return any(key in granted for key in permission_keys)


def grants_all(permissions: Iterable[str], permission_keys: Iterable[str]) -> bool:
    granted = frozenset(permissions)
    return all(key in granted for key in permission_keys)


async def has_permission(
    store: AuthorizationStore,
    user_id: str,
    organization_id: str,
    permission_key: str
) -> bool:
    """Check a single permission key for the user in the organization."""
    permissions = await get_user_permissions(store, user_id, organization_id)
    allowed = grants(permissions, permission_key)
    log.debug(
        "User %s %s permission %s in org %s",
        user_id, "granted" if allowed else "denied", permission_key, organization_id
    )
    return allowed


async def has_any_permission(
    store: AuthorizationStore,
    user_id: str,
    organization_id: str,
    permission_keys: Iterable[str]
) -> bool:
    permissions = await get_user_permissions(store, user_id, organization_id)
    return grants_any(permissions, permission_keys)


async def has_all_permissions(
    store: AuthorizationStore,
    user_id: str,
    organization_id: str,
    permission_keys: Iterable[str]
) -> bool:
    permissions = await get_user_permissions(store, user_id, organization_id)
    return grants_all(permissions, permission_keys)


# ============================================================================
# Team scope
# ============================================================================

async def get_team_member_ids(
    store: AuthorizationStore,
    user_id: str,
    organization_id: str
) -> frozenset[str]:
    """
    User ids a sales manager is deputized over.

    Looks at every team of the organization, not only the caller's own
    teams, and takes the members of each team on which the caller is
    SALES_MANAGER. Teams where the caller holds another role contribute
    nothing, even if the caller is a member there. Neither the
    organization owner nor a row carrying an OWNER marker is ever part of
    a manager's scope.
    """
    organization = await store.get_organization(organization_id)
    if organization is None:
        return frozenset()

    member_ids: set[str] = set()

    for team in await store.get_teams_in_organization(organization_id):
        member = await store.get_team_member(team.id, user_id)
        if member is None:
            continue
        if await get_granted_role_name(store, member) != SALES_MANAGER:
            continue
        for team_member in await store.get_team_members(team.id):
            if await is_owner_marker(store, team_member):
                continue
            member_ids.add(team_member.user_id)

    member_ids.discard(organization.owner_id)
    return frozenset(member_ids)
