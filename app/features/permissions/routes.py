"""
Permission API routes.

Exposes the caller's resolved organization context, permission checks,
and role management for the current organization.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.database.engine import get_db
from app.core.errors import AuthorizationDenied, NotFound
from app.core.limiter import limiter
from app.features.permissions.context import OrganizationContext
from app.features.permissions.dependencies import (
    get_authorization_store,
    get_organization_context,
    require_permission,
)
from app.features.permissions.models import Permission, Role
from app.features.permissions.schemas import (
    OrganizationContextResponse,
    OrganizationSummary,
    PermissionCheckResponse,
    PermissionResponse,
    RoleCreate,
    RoleWithPermissions,
    UserContextResponse,
)
from app.features.permissions.storage import AuthorizationStore
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


def _context_response(context: OrganizationContext) -> OrganizationContextResponse:
    return OrganizationContextResponse(
        organization_id=context.organization_id,
        user_id=context.user_id,
        role=context.role,
        permissions=sorted(context.permissions),
        team_member_ids=sorted(context.team_member_ids) if context.team_member_ids is not None else None,
    )


# ============================================================================
# Context Routes
# ============================================================================

@router.get("/context", response_model=UserContextResponse)
async def get_user_context(
    context: Annotated[OrganizationContext, Depends(get_organization_context)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
):
    """Resolved context for the requested (or primary) organization, plus all the user's organizations."""
    organizations = await store.get_organizations_for_user(context.user_id)
    return UserContextResponse(
        context=_context_response(context),
        organizations=[OrganizationSummary.model_validate(org) for org in organizations],
    )


@router.get("/check", response_model=PermissionCheckResponse)
async def check_permission(
    context: Annotated[OrganizationContext, Depends(get_organization_context)],
    key: str = Query(..., min_length=1, description="Permission key, e.g. leads.write"),
):
    """Check whether the caller holds a permission key in the organization."""
    return PermissionCheckResponse(
        key=key,
        organization_id=context.organization_id,
        has_permission=context.has_permission(key),
    )


# ============================================================================
# Permission & Role Routes
# ============================================================================

@router.get("", response_model=List[PermissionResponse])
async def list_permissions(
    _context: Annotated[OrganizationContext, Depends(require_permission("roles.read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    resource: str | None = None,
):
    """List all permission keys, optionally filtered by resource."""
    stmt = select(Permission).order_by(Permission.key)
    if resource:
        stmt = stmt.where(Permission.resource == resource)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/roles", response_model=List[RoleWithPermissions])
async def list_roles(
    context: Annotated[OrganizationContext, Depends(require_permission("roles.read"))],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
):
    """System roles plus the current organization's custom roles."""
    return await store.get_roles_for_organization(context.organization_id)


@router.post("/roles", response_model=RoleWithPermissions, status_code=status.HTTP_201_CREATED)
@limiter.limit(config.WRITE_RATE_LIMIT)
async def create_custom_role(
    request: Request,
    role_data: RoleCreate,
    context: Annotated[OrganizationContext, Depends(require_permission("roles.write"))],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Create a custom role in the current organization.

    The role only applies to members of this organization. It may reuse a
    system role's name, in which case it replaces that system role for
    this organization only.
    """
    result = await db.execute(select(Permission).where(Permission.key.in_(role_data.permission_keys)))
    permissions = list(result.scalars().all())
    unknown = set(role_data.permission_keys) - {permission.key for permission in permissions}
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown permission keys: {', '.join(sorted(unknown))}"
        )

    role = Role(
        name=role_data.name,
        description=role_data.description,
        organization_id=context.organization_id,
        is_system_role=False,
        permissions=permissions,
    )
    db.add(role)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A role with this name already exists in the organization"
        )

    await db.refresh(role)
    log.info("Created custom role %s in org %s", role.name, context.organization_id)
    return role


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_custom_role(
    role_id: str,
    context: Annotated[OrganizationContext, Depends(require_permission("roles.delete"))],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Delete a custom role of the current organization.

    System roles cannot be deleted. Memberships that referenced the role
    no longer resolve to any role.
    """
    role = await store.get_role(role_id)
    if role is None or role.organization_id not in (None, context.organization_id):
        raise NotFound("Role not found")
    if role.is_system_role or role.organization_id is None:
        raise AuthorizationDenied("System roles cannot be deleted")

    role_name = role.name
    await db.delete(role)
    await db.commit()
    log.info("Deleted custom role %s (%s) in org %s", role_name, role_id, context.organization_id)
