"""
Per-request organization context.

An OrganizationContext bundles everything the resource policies need to
know about the caller in one organization: role, permission keys and,
for sales managers, the team scope. It is built fresh for each request
and never cached or shared.
"""
from collections.abc import Iterable
from dataclasses import dataclass

from app.features.permissions.registry import SALES_MANAGER
from app.features.permissions.resolver import (
    get_role_permissions,
    get_team_member_ids,
    get_user_role,
    grants,
    grants_all,
    grants_any,
)
from app.features.permissions.storage import AuthorizationStore
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class OrganizationContext:
    organization_id: str
    user_id: str
    role: str
    permissions: frozenset[str] = frozenset()
    # Only set for SALES_MANAGER
    team_member_ids: frozenset[str] | None = None

    def has_permission(self, permission_key: str) -> bool:
        return grants(self.permissions, permission_key)

    def has_any_permission(self, permission_keys: Iterable[str]) -> bool:
        return grants_any(self.permissions, permission_keys)

    def has_all_permissions(self, permission_keys: Iterable[str]) -> bool:
        return grants_all(self.permissions, permission_keys)


async def get_primary_organization_id(store: AuthorizationStore, user_id: str) -> str | None:
    """
    The organization used when a request names none.

    The earliest-created organization the user owns, otherwise the
    earliest-created organization where the user has a team membership.
    Ties on created_at are broken by id.
    """
    owned = await store.get_owned_organizations(user_id)
    if owned:
        return owned[0].id

    joined = await store.get_member_organizations(user_id)
    if joined:
        return joined[0].id

    return None


async def get_context(
    store: AuthorizationStore,
    user_id: str,
    organization_id: str | None = None
) -> OrganizationContext | None:
    """
    Resolve the caller's context in an organization.

    Args:
        store: Storage access for this request
        user_id: Caller
        organization_id: Target organization, or None for the primary organization

    Returns:
        The context, or None if the user has no role in the organization
    """
    if not organization_id:
        organization_id = await get_primary_organization_id(store, user_id)
        if organization_id is None:
            log.debug("User %s belongs to no organization", user_id)
            return None

    role = await get_user_role(store, user_id, organization_id)
    if role is None:
        return None

    permissions = await get_role_permissions(store, role, organization_id)

    team_member_ids = None
    if role == SALES_MANAGER:
        team_member_ids = await get_team_member_ids(store, user_id, organization_id)

    return OrganizationContext(
        organization_id=organization_id,
        user_id=user_id,
        role=role,
        permissions=permissions,
        team_member_ids=team_member_ids,
    )
