"""
Seed script to populate the system permissions and roles.

Run this script after database initialization to create:
- System permissions (leads.*, contacts.*, members.*, ...)
- System roles (OWNER, ADMIN, SALES_MANAGER, SALES_REP, VIEWER)
- Role-permission assignments

Safe to run repeatedly.

Usage:
    uv run python -m scripts.seed_permissions
"""
import asyncio

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.permissions.registry import SYSTEM_ROLES
from app.features.permissions.seed import seed_reference_data
from app.utils import get_logger


log = get_logger(__name__)


async def main():
    """Main function to seed permissions and roles."""
    log.info("Starting permission seeding...")

    # Initialize database tables first
    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            await seed_reference_data(db)
        except Exception:
            log.error("Error seeding permissions", exc_info=True)
            await db.rollback()
            raise

    log.info("Permission seeding completed successfully!")
    log.info("System roles:")
    for role in SYSTEM_ROLES:
        log.info("  - %s: %s", role.name, role.description)


if __name__ == "__main__":
    asyncio.run(main())
