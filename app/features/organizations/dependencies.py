"""
Organization-related dependency injection functions.
"""
from typing import Annotated
from fastapi import Depends

from app.core.errors import NotFound
from app.features.organizations.models import Organization, Team
from app.features.permissions.context import OrganizationContext
from app.features.permissions.dependencies import get_authorization_store, get_organization_context
from app.features.permissions.storage import AuthorizationStore


async def get_organization_by_id(
    organization_id: str,
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
) -> Organization:
    """
    Get organization by ID or raise 404.

    Raises:
        NotFound: if organization not found
    """
    organization = await store.get_organization(organization_id)

    if organization is None:
        raise NotFound("Organization not found")

    return organization


async def get_context_team(
    team_id: str,
    context: Annotated[OrganizationContext, Depends(get_organization_context)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
) -> Team:
    """
    Get a team of the caller's current organization.

    A team of another organization is reported as not found.

    Raises:
        NotFound: if the team does not exist in the context organization
    """
    team = await store.get_team(team_id)

    if team is None or team.organization_id != context.organization_id:
        raise NotFound("Team not found")

    return team
