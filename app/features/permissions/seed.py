"""
Seeding of the system permissions and roles.

Idempotent: existing permissions, roles and role-permission links are
left untouched, missing ones are created. Run once at deployment time
(scripts/seed_permissions.py); request handling never writes reference data.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.models import Permission, Role, role_permissions
from app.features.permissions.registry import SYSTEM_PERMISSIONS, SYSTEM_ROLES
from app.utils import get_logger


log = get_logger(__name__)


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission keys to Permission objects
    """
    log.info("Creating default permissions...")
    result = await db.execute(select(Permission))
    permissions_map = {permission.key: permission for permission in result.scalars().all()}

    created = 0
    for definition in SYSTEM_PERMISSIONS:
        if definition.key in permissions_map:
            log.debug("Permission '%s' already exists, skipping", definition.key)
            continue

        permission = Permission(
            key=definition.key,
            resource=definition.resource,
            action=definition.action,
            description=definition.description,
        )
        db.add(permission)
        permissions_map[definition.key] = permission
        created += 1
        log.info("Created permission: %s", definition.key)

    await db.flush()
    log.info("Created %d permissions (%d total)", created, len(permissions_map))
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]) -> dict[str, Role]:
    """
    Create system roles and link their permissions.

    Args:
        db: Database session
        permissions_map: Dictionary of permission key -> Permission object
    """
    log.info("Creating system roles...")
    roles_map: dict[str, Role] = {}

    for definition in SYSTEM_ROLES:
        role = await db.scalar(
            select(Role).where(Role.name == definition.name, Role.organization_id.is_(None))
        )
        if role is None:
            role = Role(
                name=definition.name,
                description=definition.description,
                is_system_role=True,
                organization_id=None,
            )
            db.add(role)
            await db.flush()
            log.info("Created role: %s", definition.name)
        else:
            log.debug("Role '%s' already exists", definition.name)

        result = await db.execute(
            select(role_permissions.c.permission_id).where(role_permissions.c.role_id == role.id)
        )
        linked = set(result.scalars().all())

        for key in definition.permissions:
            permission = permissions_map.get(key)
            if permission is None:
                log.warning("Permission '%s' not found for role '%s'", key, definition.name)
                continue
            if permission.id in linked:
                continue
            await db.execute(
                role_permissions.insert().values(role_id=role.id, permission_id=permission.id)
            )
            linked.add(permission.id)

        roles_map[definition.name] = role
        log.info("Role '%s' has %d permissions", definition.name, len(linked))

    await db.flush()
    return roles_map


async def seed_reference_data(db: AsyncSession) -> dict[str, Role]:
    """Seed permissions, then roles, and commit."""
    permissions_map = await seed_permissions(db)
    roles_map = await seed_roles(db, permissions_map)
    await db.commit()
    return roles_map
