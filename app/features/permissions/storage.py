"""
Read-only storage access used by the authorization engine.

AuthorizationStore is the only place the resolvers touch the database.
Every method is a plain lookup; nothing is cached between calls, so a
change to memberships or roles is visible to the next resolution.
Membership lookups only see accepted rows: a pending invitation grants
nothing until it is accepted.
Database errors are not caught here.
"""
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import InvitationStatus, Organization, Team, TeamMember
from app.features.permissions.models import Permission, Role, role_permissions


class AuthorizationStore:
    """Lookups over organizations, teams, memberships, roles and permissions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_organization(self, organization_id: str) -> Organization | None:
        return await self.db.get(Organization, organization_id)

    async def get_teams_in_organization(self, organization_id: str) -> list[Team]:
        result = await self.db.execute(
            select(Team)
            .where(Team.organization_id == organization_id)
            .order_by(Team.created_at, Team.id)
        )
        return list(result.scalars().all())

    async def get_teams_for_user(self, user_id: str) -> list[Team]:
        """Teams the user owns or is a member of, oldest first."""
        member_team_ids = select(TeamMember.team_id).where(
            TeamMember.user_id == user_id, TeamMember.invitation_status == InvitationStatus.ACCEPTED
        )
        result = await self.db.execute(
            select(Team)
            .where(or_(Team.owner_id == user_id, Team.id.in_(member_team_ids)))
            .order_by(Team.created_at, Team.id)
        )
        return list(result.scalars().all())

    async def get_team(self, team_id: str) -> Team | None:
        return await self.db.get(Team, team_id)

    async def get_team_member(self, team_id: str, user_id: str) -> TeamMember | None:
        """Accepted membership of the user in the team."""
        return await self.db.scalar(
            select(TeamMember).where(
                TeamMember.team_id == team_id,
                TeamMember.user_id == user_id,
                TeamMember.invitation_status == InvitationStatus.ACCEPTED,
            )
        )

    async def get_membership(self, team_id: str, user_id: str) -> TeamMember | None:
        """Membership row in any status (accepted or pending)."""
        return await self.db.scalar(
            select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        )

    async def get_team_members(self, team_id: str) -> list[TeamMember]:
        result = await self.db.execute(
            select(TeamMember)
            .where(TeamMember.team_id == team_id, TeamMember.invitation_status == InvitationStatus.ACCEPTED)
            .order_by(TeamMember.created_at, TeamMember.id)
        )
        return list(result.scalars().all())

    async def get_team_invitations(self, team_id: str) -> list[TeamMember]:
        result = await self.db.execute(
            select(TeamMember)
            .where(TeamMember.team_id == team_id, TeamMember.invitation_status == InvitationStatus.PENDING)
            .order_by(TeamMember.created_at, TeamMember.id)
        )
        return list(result.scalars().all())

    async def get_pending_invitations(self, user_id: str) -> list[TeamMember]:
        """Invitations addressed to the user, oldest first."""
        result = await self.db.execute(
            select(TeamMember)
            .where(TeamMember.user_id == user_id, TeamMember.invitation_status == InvitationStatus.PENDING)
            .order_by(TeamMember.created_at, TeamMember.id)
        )
        return list(result.scalars().all())

    async def get_role(self, role_id: str) -> Role | None:
        return await self.db.get(Role, role_id)

    async def get_role_by_name_and_org(self, name: str, organization_id: str | None) -> Role | None:
        """
        Look up a role by name within an organization.

        An organization's own custom role wins over the system role of the
        same name. Custom roles of other organizations are never returned.
        """
        if organization_id is not None:
            custom = await self.db.scalar(
                select(Role).where(Role.name == name, Role.organization_id == organization_id)
            )
            if custom is not None:
                return custom

        return await self.db.scalar(
            select(Role)
            .where(Role.name == name, Role.organization_id.is_(None))
            .order_by(Role.created_at, Role.id)
            .limit(1)
        )

    async def get_roles_for_organization(self, organization_id: str) -> list[Role]:
        """System roles plus the organization's custom roles."""
        result = await self.db.execute(
            select(Role)
            .where(or_(Role.organization_id == organization_id, Role.organization_id.is_(None)))
            .order_by(Role.is_system_role.desc(), Role.name)
        )
        return list(result.scalars().all())

    async def get_role_permission_keys(self, role_id: str) -> frozenset[str]:
        result = await self.db.execute(
            select(Permission.key)
            .join(role_permissions, role_permissions.c.permission_id == Permission.id)
            .where(role_permissions.c.role_id == role_id)
        )
        return frozenset(result.scalars().all())

    async def get_owned_organizations(self, user_id: str) -> list[Organization]:
        result = await self.db.execute(
            select(Organization)
            .where(Organization.owner_id == user_id)
            .order_by(Organization.created_at, Organization.id)
        )
        return list(result.scalars().all())

    async def get_member_organizations(self, user_id: str) -> list[Organization]:
        """Organizations where the user has at least one accepted team membership."""
        member_org_ids = (
            select(Team.organization_id)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user_id, TeamMember.invitation_status == InvitationStatus.ACCEPTED)
        )
        result = await self.db.execute(
            select(Organization)
            .where(Organization.id.in_(member_org_ids))
            .order_by(Organization.created_at, Organization.id)
        )
        return list(result.scalars().all())

    async def get_organizations_for_user(self, user_id: str) -> list[Organization]:
        """
        Owned organizations first, then member organizations, each group
        oldest first, without duplicates.
        """
        organizations = await self.get_owned_organizations(user_id)
        seen = {organization.id for organization in organizations}
        for organization in await self.get_member_organizations(user_id):
            if organization.id not in seen:
                seen.add(organization.id)
                organizations.append(organization)
        return organizations
