"""
Organization feature routes.

Team routes act on the caller's current organization (X-Organization-Id
header, ?organization_id=, or the primary organization). Invitation
routes under /invitations act on the caller's own pending memberships and
need no organization context, since a pending membership grants none.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.errors import ContextUnavailable, NotFound
from app.core.limiter import limiter
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.organizations.models import Organization, Team
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationResponse,
    OrganizationWithTeam,
    TeamCreate,
    TeamMemberCreate,
    TeamMemberResponse,
    TeamResponse,
)
from app.features.organizations.dependencies import get_context_team, get_organization_by_id
from app.features.organizations.service import (
    MembershipConflict,
    accept_invitation,
    add_team_member,
    create_organization_for_user,
    create_team,
    decline_invitation,
    invite_team_member,
    remove_team_member,
)
from app.features.permissions.context import OrganizationContext, get_context
from app.features.permissions.dependencies import get_authorization_store, require_permission
from app.features.permissions.storage import AuthorizationStore


router = APIRouter(tags=["organizations"])


# Organization endpoints
@router.post("/", response_model=OrganizationWithTeam, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.WRITE_RATE_LIMIT)
async def create_organization(
    request: Request,
    org_data: OrganizationCreate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a new organization and its default team; the caller becomes the owner."""
    organization, team = await create_organization_for_user(db, user.id, org_data.name, org_data.domain)
    return OrganizationWithTeam(
        organization=OrganizationResponse.model_validate(organization),
        team=TeamResponse.model_validate(team),
    )


@router.get("/my", response_model=list[OrganizationResponse])
async def get_my_organizations(
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
):
    """Organizations the caller owns (first) or is a member of, oldest first."""
    return await store.get_organizations_for_user(user.id)


# Team endpoints
@router.get("/teams", response_model=list[TeamResponse])
async def list_teams(
    context: Annotated[OrganizationContext, Depends(require_permission("members.read"))],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
):
    """List the teams of the current organization."""
    return await store.get_teams_in_organization(context.organization_id)


@router.post("/teams", response_model=TeamResponse, status_code=status.HTTP_201_CREATED)
async def create_organization_team(
    team_data: TeamCreate,
    context: Annotated[OrganizationContext, Depends(require_permission("members.manage"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a team in the current organization."""
    return await create_team(db, context.organization_id, context.user_id, team_data.name, team_data.description)


@router.get("/teams/{team_id}/members", response_model=list[TeamMemberResponse])
async def list_team_members(
    _context: Annotated[OrganizationContext, Depends(require_permission("members.read"))],
    team: Annotated[Team, Depends(get_context_team)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
):
    """List the members of a team."""
    return await store.get_team_members(team.id)


@router.post("/teams/{team_id}/members", response_model=TeamMemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    member_data: TeamMemberCreate,
    _context: Annotated[OrganizationContext, Depends(require_permission("members.invite"))],
    team: Annotated[Team, Depends(get_context_team)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Add a user to a team with a role."""
    if await db.get(User, member_data.user_id) is None:
        raise NotFound("User not found")

    try:
        return await add_team_member(db, team, member_data.user_id, member_data.role)
    except MembershipConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of this team"
        )


@router.delete("/teams/{team_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    user_id: str,
    _context: Annotated[OrganizationContext, Depends(require_permission("members.remove"))],
    team: Annotated[Team, Depends(get_context_team)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Remove a user's membership in a team, accepted or pending."""
    await remove_team_member(db, team.id, user_id)


@router.get("/teams/{team_id}/invitations", response_model=list[TeamMemberResponse])
async def list_team_invitations(
    _context: Annotated[OrganizationContext, Depends(require_permission("members.read"))],
    team: Annotated[Team, Depends(get_context_team)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
):
    """List pending invitations to a team."""
    return await store.get_team_invitations(team.id)


@router.post("/teams/{team_id}/invitations", response_model=TeamMemberResponse, status_code=status.HTTP_201_CREATED)
async def invite_member(
    member_data: TeamMemberCreate,
    _context: Annotated[OrganizationContext, Depends(require_permission("members.invite"))],
    team: Annotated[Team, Depends(get_context_team)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Invite a user to a team; the role applies once the invitation is accepted."""
    if await db.get(User, member_data.user_id) is None:
        raise NotFound("User not found")

    try:
        return await invite_team_member(db, team, member_data.user_id, member_data.role)
    except MembershipConflict:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User is already a member of or invited to this team"
        )


@router.delete("/teams/{team_id}/invitations/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_invitation(
    user_id: str,
    _context: Annotated[OrganizationContext, Depends(require_permission("members.invite"))],
    team: Annotated[Team, Depends(get_context_team)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Withdraw a pending invitation."""
    await decline_invitation(db, team.id, user_id)


@router.get("/invitations", response_model=list[TeamMemberResponse])
async def get_my_invitations(
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
):
    """Pending invitations addressed to the caller, oldest first."""
    return await store.get_pending_invitations(user.id)


@router.post("/invitations/{team_id}/accept", response_model=TeamMemberResponse)
async def accept_team_invitation(
    team_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Accept an invitation to a team."""
    return await accept_invitation(db, team_id, user.id)


@router.delete("/invitations/{team_id}", status_code=status.HTTP_204_NO_CONTENT)
async def decline_team_invitation(
    team_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Decline an invitation to a team."""
    await decline_invitation(db, team_id, user.id)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization: Annotated[Organization, Depends(get_organization_by_id)],
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
):
    """Get an organization the caller belongs to."""
    if await get_context(store, user.id, organization.id) is None:
        raise ContextUnavailable("You are not a member of this organization")
    return organization
