"""
Pydantic schemas for permission management.

Request and response models for permissions, roles and the resolved
organization context.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator

from app.features.permissions.registry import OWNER


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: str
    key: str
    resource: str
    action: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleBase(BaseModel):
    """Base role schema."""
    name: str = Field(..., min_length=1, max_length=50, description="Role name, unique within the organization")
    description: Optional[str] = Field(None, max_length=1000, description="Role description")


class RoleCreate(RoleBase):
    """Schema for creating an organization-scoped custom role."""
    permission_keys: List[str] = Field(default_factory=list, description="Permission keys granted by the role")

    @field_validator('name')
    @classmethod
    def name_alphanumeric_underscore(cls, v: str) -> str:
        """Validate role name format."""
        if not v.replace('_', '').replace('-', '').isalnum():
            raise ValueError('Role name must contain only alphanumeric characters, underscores, and hyphens')
        if v.upper() == OWNER:
            raise ValueError('OWNER is reserved for the organization owner')
        return v


class RoleResponse(RoleBase):
    """Schema for role response."""
    id: str
    organization_id: Optional[str]
    is_system_role: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleWithPermissions(RoleResponse):
    """Schema for role with permissions."""
    permissions: List[PermissionResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Context Schemas
# ============================================================================

class OrganizationContextResponse(BaseModel):
    """The caller's resolved context in one organization."""
    organization_id: str
    user_id: str
    role: str
    permissions: List[str]
    team_member_ids: Optional[List[str]] = None


class OrganizationSummary(BaseModel):
    id: str
    name: str
    owner_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserContextResponse(BaseModel):
    """Context plus every organization the caller can switch to."""
    context: OrganizationContextResponse
    organizations: List[OrganizationSummary]


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    key: str
    organization_id: str
    has_permission: bool
