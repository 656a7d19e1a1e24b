"""Shared pytest fixtures."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import SimpleNamespace

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database.base import Base
from app.core.database.engine import get_db, import_models
from app.features.organizations.models import Team, TeamMember
from app.features.organizations.service import add_team_member, create_organization_for_user
from app.features.permissions.seed import seed_reference_data
from app.features.permissions.storage import AuthorizationStore
from app.features.users.auth import create_access_token
from app.features.users.models import User


@pytest_asyncio.fixture()
async def engine() -> AsyncIterator[AsyncEngine]:
    """In-memory SQLite database shared by every session of one test."""

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory over a database seeded with the system roles."""

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as db:
        await seed_reference_data(db)
    return factory


@pytest_asyncio.fixture()
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def store(db: AsyncSession) -> AuthorizationStore:
    return AuthorizationStore(db)


async def create_user(db: AsyncSession, name: str) -> User:
    user = User(email=f"{name.lower()}@example.com", name=name)
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture()
async def scenario(session_factory: async_sessionmaker[AsyncSession]) -> SimpleNamespace:
    """
    Organization owned by A.

        Team1 (default) = {A: owner, B: SALES_MANAGER, C: SALES_REP}
        Team2           = {D: SALES_REP}
        Team3           = {admin: ADMIN, viewer: VIEWER, weird: "SUPERUSER" (legacy string)}

    outsider has no relationship to the organization.
    """

    async with session_factory() as db:
        users = {
            name: await create_user(db, name)
            for name in ("A", "B", "C", "D", "Admin", "Viewer", "Weird", "Outsider")
        }
        org, team1 = await create_organization_for_user(db, users["A"].id, "Acme")

        # Separate commits keep team creation order unambiguous
        team2 = Team(organization_id=org.id, owner_id=users["A"].id, name="Second")
        db.add(team2)
        await db.commit()
        team3 = Team(organization_id=org.id, owner_id=users["A"].id, name="Back office")
        db.add(team3)
        await db.commit()

        await add_team_member(db, team1, users["B"].id, "SALES_MANAGER")
        await add_team_member(db, team1, users["C"].id, "SALES_REP")
        await add_team_member(db, team2, users["D"].id, "SALES_REP")
        await add_team_member(db, team3, users["Admin"].id, "ADMIN")
        await add_team_member(db, team3, users["Viewer"].id, "VIEWER")

        db.add(TeamMember(team_id=team3.id, user_id=users["Weird"].id, role_id=None, role="SUPERUSER"))
        await db.commit()

        return SimpleNamespace(
            org_id=org.id,
            team1_id=team1.id,
            team2_id=team2.id,
            team3_id=team3.id,
            a=users["A"].id,
            b=users["B"].id,
            c=users["C"].id,
            d=users["D"].id,
            admin=users["Admin"].id,
            viewer=users["Viewer"].id,
            weird=users["Weird"].id,
            outsider=users["Outsider"].id,
        )


@asynccontextmanager
async def app_client(
    session_factory: async_sessionmaker[AsyncSession],
    raise_app_exceptions: bool = True,
) -> AsyncIterator[AsyncClient]:
    """
    HTTPX async client bound to the FastAPI app, using the test database.

    With raise_app_exceptions=False unhandled errors come back as the 500
    response a real server would send instead of being raised in the test.
    """

    from app.main import app

    async def override_get_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
    try:
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    async with app_client(session_factory) as ac:
        yield ac


def auth_headers(user_id: str, organization_id: str | None = None) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {create_access_token(user_id)}"}
    if organization_id:
        headers["X-Organization-Id"] = organization_id
    return headers
