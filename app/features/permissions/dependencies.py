"""
FastAPI dependencies for organization context and permission checks.

Implements:
- Organization selection from the request
- Context resolution for the current user
- Route guards by permission key
"""
from collections.abc import Sequence
from typing import Annotated
from fastapi import Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AuthorizationDenied, ContextUnavailable, NotFound
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.features.permissions.context import OrganizationContext, get_context
from app.features.permissions.storage import AuthorizationStore
from app.utils import get_logger


log = get_logger(__name__)


def get_authorization_store(
    db: Annotated[AsyncSession, Depends(get_db)]
) -> AuthorizationStore:
    return AuthorizationStore(db)


def get_requested_organization_id(
    x_organization_id: Annotated[str | None, Header()] = None,
    organization_id: Annotated[str | None, Query()] = None,
) -> str | None:
    """Organization named by the request: X-Organization-Id header, then ?organization_id=."""
    return x_organization_id or organization_id


async def get_organization_context(
    user: Annotated[User, Depends(get_current_user)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
    organization_id: Annotated[str | None, Depends(get_requested_organization_id)],
) -> OrganizationContext:
    """
    Resolve the current user's context.

    Uses the requested organization, or the user's primary organization
    when the request names none.

    Raises:
        NotFound: the requested organization does not exist
        ContextUnavailable: the user has no role in the organization
    """
    if organization_id and await store.get_organization(organization_id) is None:
        raise NotFound("Organization not found")

    context = await get_context(store, user.id, organization_id)
    if context is None:
        log.debug("No organization context for user %s (org=%s)", user.id, organization_id)
        raise ContextUnavailable("No organization access")

    return context


def require_permission(permission_key: str):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.post("/leads")
        async def create_lead(
            context: OrganizationContext = Depends(require_permission("leads.write"))
        ):
            ...

    Returns:
        Dependency function that returns the organization context if allowed

    Raises:
        AuthorizationDenied: 403 if the permission is missing
    """
    async def permission_dependency(
        context: Annotated[OrganizationContext, Depends(get_organization_context)]
    ) -> OrganizationContext:
        if not context.has_permission(permission_key):
            log.debug("User %s denied %s in org %s", context.user_id, permission_key, context.organization_id)
            raise AuthorizationDenied(f"Permission denied: {permission_key}")
        return context

    return permission_dependency


def require_any_permission(permission_keys: Sequence[str]):
    """
    FastAPI dependency to require ANY of the specified permissions.

    Usage:
        @router.post("/leads")
        async def create_lead(
            context: OrganizationContext = Depends(require_any_permission(["leads.write", "leads.write_own"]))
        ):
            ...
    """
    keys = tuple(permission_keys)

    async def permission_dependency(
        context: Annotated[OrganizationContext, Depends(get_organization_context)]
    ) -> OrganizationContext:
        if not context.has_any_permission(keys):
            raise AuthorizationDenied(f"Permission denied: requires one of {', '.join(keys)}")
        return context

    return permission_dependency
