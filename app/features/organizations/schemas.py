"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field

from app.features.organizations.models import InvitationStatus
from app.features.permissions.registry import RoleName


# Organization Schemas
class OrganizationCreate(BaseModel):
    """Schema for creating a new organization; the caller becomes its owner."""
    name: str = Field(..., min_length=1, max_length=255)
    domain: str | None = Field(None, max_length=255)


class OrganizationResponse(BaseModel):
    """Schema for organization responses."""
    id: str
    name: str
    domain: str | None = None
    owner_id: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# Team Schemas
class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=1000)


class TeamResponse(BaseModel):
    id: str
    organization_id: str
    owner_id: str
    name: str
    description: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrganizationWithTeam(BaseModel):
    """Response for organization creation."""
    organization: OrganizationResponse
    team: TeamResponse


# Membership Schemas
class TeamMemberCreate(BaseModel):
    """Schema for adding a user to a team."""
    user_id: str = Field(..., description="User ID")
    role: str = Field(
        default=RoleName.SALES_REP.value,
        min_length=1,
        max_length=50,
        description="Role name (system role or a custom role of the organization)"
    )


class TeamMemberResponse(BaseModel):
    id: str
    team_id: str
    user_id: str
    role_id: str | None = None
    role: str | None = None
    invitation_status: InvitationStatus
    created_at: datetime

    model_config = {"from_attributes": True}
