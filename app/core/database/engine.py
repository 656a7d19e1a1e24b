"""
Async engine, session factory and the request-scoped session dependency.

DATABASE_URL selects the backend: sqlite+aiosqlite for local runs and
tests, postgresql+asyncpg in deployment (install asyncpg separately).
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core import config


engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    # SQLite file databases do not benefit from pooling
    poolclass=NullPool if config.SQLALCHEMY_DATABASE_URL.startswith("sqlite") else None,
    echo=False,
)

# expire_on_commit=False: handlers serialize ORM objects after committing
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request.

    Commits when the handler returns. On any exception the session is
    rolled back and the exception re-raised, so storage failures surface
    as 500 instead of being turned into an authorization answer.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def import_models() -> None:
    """Register every mapped table on Base.metadata."""
    from app.features.users.models import User  # noqa: F401
    from app.features.organizations.models import (  # noqa: F401
        Organization, Team, TeamMember
    )
    from app.features.permissions.models import (  # noqa: F401
        Permission, Role, role_permissions
    )
    from app.features.leads.models import Lead  # noqa: F401


async def init_db(bind: AsyncEngine | None = None):
    """
    Create missing tables on the given engine (the application engine by
    default). Reference data is seeded separately by
    scripts/seed_permissions.py.
    """
    from app.core.database.base import Base

    import_models()

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
