"""
Lead routes.

Every route resolves the caller's organization context and delegates
visibility and mutation decisions to app.features.permissions.policy.
A lead the caller cannot read is reported as not found.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AuthorizationDenied, NotFound
from app.features.leads.models import Lead, LeadStatus
from app.features.leads.schemas import LeadAssign, LeadCreate, LeadResponse, LeadUpdate
from app.features.permissions.context import OrganizationContext
from app.features.permissions.dependencies import (
    get_authorization_store,
    get_organization_context,
    require_any_permission,
    require_permission,
)
from app.features.permissions.policy import (
    can_delete_resource,
    can_modify_resource,
    can_read_resource,
    get_visible_resources,
)
from app.features.permissions.registry import SALES_MANAGER
from app.features.permissions.resolver import get_user_role
from app.features.permissions.storage import AuthorizationStore
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()

LEAD_READ_PERMISSIONS = ("leads.read", "leads.read_own")
LEAD_WRITE_PERMISSIONS = ("leads.write", "leads.write_own")


async def get_readable_lead(
    lead_id: str,
    context: Annotated[OrganizationContext, Depends(require_any_permission(LEAD_READ_PERMISSIONS))],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Lead:
    """
    Load a lead the caller may read.

    Raises:
        AuthorizationDenied: the caller holds no lead read permission
        NotFound: the lead does not exist or is not visible to the caller
    """
    lead = await db.get(Lead, lead_id)
    if lead is None or not can_read_resource(context, lead):
        raise NotFound("Lead not found")
    return lead


async def check_assignee(
    context: OrganizationContext,
    store: AuthorizationStore,
    assignee_id: str
) -> None:
    """
    Validate a new assignee for a lead.

    The assignee must belong to the organization. Sales managers may only
    assign within their team scope.
    """
    if assignee_id == context.user_id:
        return
    if not context.has_permission("leads.assign"):
        raise AuthorizationDenied("Permission denied: leads.assign")
    if await get_user_role(store, assignee_id, context.organization_id) is None:
        raise NotFound("Assignee is not a member of this organization")
    if context.role == SALES_MANAGER and assignee_id not in (context.team_member_ids or ()):
        raise AuthorizationDenied("Assignee is outside your team")


@router.get("", response_model=list[LeadResponse])
async def list_leads(
    context: Annotated[OrganizationContext, Depends(require_any_permission(LEAD_READ_PERMISSIONS))],
    db: Annotated[AsyncSession, Depends(get_db)],
    lead_status: LeadStatus | None = None,
):
    """List the leads of the current organization visible to the caller, newest first."""
    stmt = (
        select(Lead)
        .where(Lead.organization_id == context.organization_id)
        .order_by(Lead.created_at.desc(), Lead.id.desc())
    )
    if lead_status is not None:
        stmt = stmt.where(Lead.status == lead_status)

    result = await db.execute(stmt)
    return get_visible_resources(context, result.scalars().all())


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(
    lead: Annotated[Lead, Depends(get_readable_lead)]
):
    """Get a lead by ID."""
    return lead


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(
    lead_data: LeadCreate,
    context: Annotated[OrganizationContext, Depends(require_any_permission(LEAD_WRITE_PERMISSIONS))],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a lead in the current organization, owned by the caller."""
    if lead_data.assigned_to:
        await check_assignee(context, store, lead_data.assigned_to)

    lead = Lead(
        **lead_data.model_dump(),
        organization_id=context.organization_id,
        user_id=context.user_id,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)
    log.info("User %s created lead %s in org %s", context.user_id, lead.id, context.organization_id)
    return lead


@router.patch("/{lead_id}", response_model=LeadResponse)
async def update_lead(
    update_data: LeadUpdate,
    context: Annotated[OrganizationContext, Depends(get_organization_context)],
    lead: Annotated[Lead, Depends(get_readable_lead)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update a lead the caller may modify."""
    if not can_modify_resource(context, lead):
        raise AuthorizationDenied()

    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(lead, field, value)

    await db.commit()
    await db.refresh(lead)
    return lead


@router.post("/{lead_id}/assign", response_model=LeadResponse)
async def assign_lead(
    assignment: LeadAssign,
    context: Annotated[OrganizationContext, Depends(require_permission("leads.assign"))],
    lead: Annotated[Lead, Depends(get_readable_lead)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Reassign a lead (or clear its assignee)."""
    if not can_modify_resource(context, lead):
        raise AuthorizationDenied()
    if assignment.assigned_to:
        await check_assignee(context, store, assignment.assigned_to)

    lead.assigned_to = assignment.assigned_to
    await db.commit()
    await db.refresh(lead)
    log.info("User %s assigned lead %s to %s", context.user_id, lead.id, lead.assigned_to)
    return lead


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(
    context: Annotated[OrganizationContext, Depends(get_organization_context)],
    lead: Annotated[Lead, Depends(get_readable_lead)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Delete a lead the caller may delete."""
    if not can_delete_resource(context, lead):
        raise AuthorizationDenied()

    lead_id = lead.id
    await db.delete(lead)
    await db.commit()
    log.info("User %s deleted lead %s", context.user_id, lead_id)
