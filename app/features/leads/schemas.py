"""
Pydantic schemas for leads.
"""
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field

from app.features.leads.models import LeadStatus


class LeadBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    company_name: str | None = Field(None, max_length=255)
    status: LeadStatus = LeadStatus.NEW
    value: Decimal | None = Field(None, ge=0)
    notes: str | None = None


class LeadCreate(LeadBase):
    """New lead; the caller becomes its creator."""
    assigned_to: str | None = Field(None, description="User ID to assign the lead to")


class LeadUpdate(BaseModel):
    """Editable lead fields. Reassignment goes through /leads/{id}/assign."""
    title: str | None = Field(None, min_length=1, max_length=255)
    company_name: str | None = Field(None, max_length=255)
    status: LeadStatus | None = None
    value: Decimal | None = Field(None, ge=0)
    notes: str | None = None


class LeadAssign(BaseModel):
    assigned_to: str | None = Field(..., description="User ID, or null to unassign")


class LeadResponse(LeadBase):
    id: str
    organization_id: str
    user_id: str
    assigned_to: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
