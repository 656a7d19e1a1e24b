"""
Organization and team membership lifecycle.

An organization is always created together with its default team, and
the creator gets a membership row on that team marked with the legacy
"owner" role. That row grants nothing by itself: ownership comes from
Organization.owner_id only, and OWNER is never handed out through a
membership.

Memberships are added directly (ACCEPTED) or through an invitation
(PENDING until the invitee accepts). Declining, revoking or removing
deletes the row.
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import AuthorizationDenied, NotFound
from app.features.organizations.models import InvitationStatus, Organization, Team, TeamMember
from app.features.permissions.registry import OWNER
from app.features.permissions.storage import AuthorizationStore
from app.utils import get_logger


log = get_logger(__name__)


class MembershipConflict(Exception):
    """The (team, user) pair already has a membership row."""


async def create_organization_for_user(
    db: AsyncSession,
    user_id: str,
    name: str,
    domain: str | None = None,
) -> tuple[Organization, Team]:
    """
    Create an organization owned by user_id plus its default team.

    Returns:
        (organization, default team)
    """
    organization = Organization(name=name, domain=domain, owner_id=user_id)
    db.add(organization)
    await db.flush()

    team = Team(
        organization_id=organization.id,
        owner_id=user_id,
        name=f"{name} Team",
        description="Default team",
    )
    db.add(team)
    await db.flush()

    # Marker only; no role_id so the row cannot resolve to OWNER
    db.add(TeamMember(
        team_id=team.id,
        user_id=user_id,
        role="owner",
        invitation_status=InvitationStatus.ACCEPTED,
    ))
    await db.commit()
    await db.refresh(organization)
    await db.refresh(team)

    log.info("Created organization %s (%s) with default team %s for user %s", organization.id, name, team.id, user_id)
    return organization, team


async def create_team(
    db: AsyncSession,
    organization_id: str,
    owner_id: str,
    name: str,
    description: str | None = None,
) -> Team:
    team = Team(organization_id=organization_id, owner_id=owner_id, name=name, description=description)
    db.add(team)
    await db.commit()
    await db.refresh(team)
    log.info("Created team %s in org %s", team.id, organization_id)
    return team


async def add_team_member(
    db: AsyncSession,
    team: Team,
    user_id: str,
    role_name: str,
    invitation_status: InvitationStatus = InvitationStatus.ACCEPTED,
) -> TeamMember:
    """
    Add a user to a team with the named role.

    The role is resolved for the team's organization (custom role first,
    then system role).

    Raises:
        AuthorizationDenied: the role is OWNER, which only Organization.owner_id confers
        NotFound: no role with that name exists for the organization
        MembershipConflict: the user is already a member of (or invited to) the team
    """
    if role_name.upper() == OWNER:
        log.warning("Refused to grant OWNER to user %s on team %s", user_id, team.id)
        raise AuthorizationDenied("The OWNER role cannot be granted through membership")

    # Rollback expires loaded instances; keep plain values for the messages
    team_id = team.id
    role = await AuthorizationStore(db).get_role_by_name_and_org(role_name, team.organization_id)
    if role is None:
        raise NotFound(f"Role {role_name} not found")

    member = TeamMember(
        team_id=team_id,
        user_id=user_id,
        role_id=role.id,
        invitation_status=invitation_status,
    )
    db.add(member)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise MembershipConflict(f"User {user_id} is already a member of team {team_id}") from e

    await db.refresh(member)
    log.info("Added user %s to team %s as %s (%s)", user_id, team_id, role_name, invitation_status.value)
    return member


async def invite_team_member(db: AsyncSession, team: Team, user_id: str, role_name: str) -> TeamMember:
    """Create a PENDING membership; same checks and errors as add_team_member."""
    return await add_team_member(db, team, user_id, role_name, InvitationStatus.PENDING)


async def get_pending_invitation(db: AsyncSession, team_id: str, user_id: str) -> TeamMember:
    member = await AuthorizationStore(db).get_membership(team_id, user_id)
    if member is None or member.invitation_status != InvitationStatus.PENDING:
        raise NotFound("Invitation not found")
    return member


async def accept_invitation(db: AsyncSession, team_id: str, user_id: str) -> TeamMember:
    """
    Accept a pending invitation; from here on the membership counts for
    role and team-scope resolution.

    Raises:
        NotFound: the user has no pending invitation to the team
    """
    member = await get_pending_invitation(db, team_id, user_id)
    member.invitation_status = InvitationStatus.ACCEPTED
    await db.commit()
    await db.refresh(member)
    log.info("User %s accepted invitation to team %s", user_id, team_id)
    return member


async def decline_invitation(db: AsyncSession, team_id: str, user_id: str) -> None:
    """
    Delete a pending invitation. Used both by the invitee (decline) and
    by a member manager (revoke).

    Raises:
        NotFound: the user has no pending invitation to the team
    """
    member = await get_pending_invitation(db, team_id, user_id)
    await db.delete(member)
    await db.commit()
    log.info("Invitation of user %s to team %s withdrawn", user_id, team_id)


async def remove_team_member(db: AsyncSession, team_id: str, user_id: str) -> None:
    """
    Delete a membership, accepted or pending.

    Raises:
        NotFound: the user has no membership row on the team
    """
    member = await AuthorizationStore(db).get_membership(team_id, user_id)
    if member is None:
        raise NotFound("Team member not found")

    await db.delete(member)
    await db.commit()
    log.info("Removed user %s from team %s", user_id, team_id)
