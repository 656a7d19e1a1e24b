"""
Organization, team and team membership models.

Organizations are the tenant boundary of the CRM. Every organization has
exactly one owner (organizations.owner_id); ownership is authoritative and
does not need a membership row. All other access comes from team
membership: a TeamMember row joins a user to a team and carries the role
the user holds on that team.
"""
from sqlalchemy import String, ForeignKey, UniqueConstraint, Enum as SQLEnum, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
import enum

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Organization(Base, TimestampMixin):
    """
    Organization (tenant).

    Created together with its default team; see
    app.features.organizations.service.create_organization_for_user.
    """
    __tablename__ = "organizations"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    domain: Mapped[str | None] = mapped_column(String(255), nullable=True)

    owner_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Relationships
    teams: Mapped[list["Team"]] = relationship(
        "Team",
        back_populates="organization",
        cascade="all, delete-orphan",
        order_by="Team.created_at"
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name={self.name!r}, owner_id={self.owner_id})>"


class Team(Base, TimestampMixin):
    """A group of users inside exactly one organization."""
    __tablename__ = "teams"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    organization_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    owner_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    organization: Mapped["Organization"] = relationship("Organization", back_populates="teams")
    members: Mapped[list["TeamMember"]] = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name!r}, org_id={self.organization_id})>"


class InvitationStatus(str, enum.Enum):
    """
    Membership status. An invitation is a PENDING row that grants nothing
    until the invitee accepts it; declining or revoking deletes the row.
    """
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"


class TeamMember(Base, TimestampMixin):
    """
    Membership of a user in a team.

    The role is normally referenced through role_id. Older rows only carry
    the bare role string in `role`; it is used verbatim when role_id is
    not set.
    """
    __tablename__ = "team_members"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    team_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    role_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    # Legacy bare role string
    role: Mapped[str | None] = mapped_column(String(50), nullable=True)

    invitation_status: Mapped[InvitationStatus] = mapped_column(
        SQLEnum(InvitationStatus),
        default=InvitationStatus.ACCEPTED,
        nullable=False
    )

    # Relationships
    team: Mapped["Team"] = relationship("Team", back_populates="members")

    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember(team_id={self.team_id}, user_id={self.user_id}, role_id={self.role_id}, role={self.role!r})>"
