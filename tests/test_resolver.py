import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.models import Team, TeamMember
from app.features.organizations.service import add_team_member, create_organization_for_user
from app.features.permissions.models import Role
from app.features.permissions.registry import ROLE_REGISTRY
from app.features.permissions.resolver import (
    get_team_member_ids,
    get_user_permissions,
    get_user_role,
    grants_all,
    grants_any,
    has_all_permissions,
    has_any_permission,
    has_permission,
)
from app.features.permissions.storage import AuthorizationStore

from conftest import create_user


@pytest.mark.asyncio
async def test_owner_short_circuits_membership_role(store: AuthorizationStore, db: AsyncSession, scenario) -> None:
    # Give the owner a contradicting membership row on another team
    db.add(TeamMember(team_id=scenario.team2_id, user_id=scenario.a, role="VIEWER"))
    await db.commit()

    assert await get_user_role(store, scenario.a, scenario.org_id) == "OWNER"


@pytest.mark.asyncio
async def test_member_roles_resolve_from_membership(store: AuthorizationStore, scenario) -> None:
    assert await get_user_role(store, scenario.b, scenario.org_id) == "SALES_MANAGER"
    assert await get_user_role(store, scenario.c, scenario.org_id) == "SALES_REP"
    assert await get_user_role(store, scenario.admin, scenario.org_id) == "ADMIN"
    assert await get_user_role(store, scenario.viewer, scenario.org_id) == "VIEWER"


@pytest.mark.asyncio
async def test_legacy_role_string_is_used_verbatim(store: AuthorizationStore, scenario) -> None:
    assert await get_user_role(store, scenario.weird, scenario.org_id) == "SUPERUSER"


@pytest.mark.asyncio
async def test_no_relationship_resolves_to_none(store: AuthorizationStore, scenario) -> None:
    assert await get_user_role(store, scenario.outsider, scenario.org_id) is None
    assert await get_user_role(store, scenario.b, "01UNKNOWNORGANIZATION00000") is None


@pytest.mark.asyncio
async def test_first_team_wins_on_conflicting_roles(store: AuthorizationStore, db: AsyncSession, scenario) -> None:
    # D is SALES_REP on Team2; Team1 is older, so a Team1 membership takes precedence
    team1 = await db.get(Team, scenario.team1_id)
    await add_team_member(db, team1, scenario.d, "VIEWER")

    assert await get_user_role(store, scenario.d, scenario.org_id) == "VIEWER"


@pytest.mark.asyncio
async def test_permissions_follow_system_role(store: AuthorizationStore, scenario) -> None:
    permissions = await get_user_permissions(store, scenario.c, scenario.org_id)

    assert permissions == frozenset(ROLE_REGISTRY["SALES_REP"].permissions)


@pytest.mark.asyncio
async def test_permissions_fail_closed(store: AuthorizationStore, scenario) -> None:
    assert await get_user_permissions(store, scenario.outsider, scenario.org_id) == frozenset()
    assert await get_user_permissions(store, scenario.weird, scenario.org_id) == frozenset()


@pytest.mark.asyncio
async def test_permission_predicates(store: AuthorizationStore, scenario) -> None:
    assert await has_permission(store, scenario.a, scenario.org_id, "members.remove")
    assert not await has_permission(store, scenario.admin, scenario.org_id, "members.remove")
    assert await has_any_permission(store, scenario.c, scenario.org_id, ["leads.write", "leads.write_own"])
    assert not await has_all_permissions(store, scenario.c, scenario.org_id, ["leads.write", "leads.write_own"])
    assert await has_all_permissions(store, scenario.b, scenario.org_id, ["leads.write", "leads.assign"])
    assert not await has_permission(store, scenario.outsider, scenario.org_id, "leads.read")


def test_pure_permission_predicates() -> None:
    granted = frozenset({"leads.read", "leads.write"})

    assert grants_any(granted, ["leads.delete", "leads.write"])
    assert not grants_any(granted, [])
    assert grants_all(granted, [])
    assert not grants_all(granted, ["leads.read", "leads.delete"])


@pytest.mark.asyncio
async def test_custom_role_does_not_leak_across_organizations(
    store: AuthorizationStore, db: AsyncSession, scenario
) -> None:
    # Another organization redefines SALES_REP with extra permissions
    other_owner = await create_user(db, "OtherOwner")
    other_org, other_team = await create_organization_for_user(db, other_owner.id, "Other")
    db.add(Role(name="SALES_REP", organization_id=other_org.id, is_system_role=False))
    await db.commit()
    custom = await store.get_role_by_name_and_org("SALES_REP", other_org.id)
    system = await store.get_role_by_name_and_org("SALES_REP", scenario.org_id)

    assert custom is not None and custom.organization_id == other_org.id
    assert system is not None and system.organization_id is None

    # The custom role grants nothing; it only applies inside the other organization
    other_rep = await create_user(db, "OtherRep")
    await add_team_member(db, other_team, other_rep.id, "SALES_REP")

    assert await get_user_permissions(store, other_rep.id, other_org.id) == frozenset()
    assert await get_user_permissions(store, scenario.c, scenario.org_id) == frozenset(
        ROLE_REGISTRY["SALES_REP"].permissions
    )


@pytest.mark.asyncio
async def test_team_scope_is_per_team(store: AuthorizationStore, scenario) -> None:
    scope = await get_team_member_ids(store, scenario.b, scenario.org_id)

    assert scope == frozenset({scenario.b, scenario.c})


@pytest.mark.asyncio
async def test_team_scope_is_idempotent_set(store: AuthorizationStore, scenario) -> None:
    first = await get_team_member_ids(store, scenario.b, scenario.org_id)
    second = await get_team_member_ids(store, scenario.b, scenario.org_id)

    assert first == second
    assert isinstance(first, frozenset)
    assert len(first) == len(set(first))


@pytest.mark.asyncio
async def test_team_scope_ignores_teams_with_other_roles(
    store: AuthorizationStore, db: AsyncSession, scenario
) -> None:
    # B joins Team2 as a rep: D must stay out of scope
    team2 = await db.get(Team, scenario.team2_id)
    await add_team_member(db, team2, scenario.b, "SALES_REP")

    assert await get_team_member_ids(store, scenario.b, scenario.org_id) == frozenset({scenario.b, scenario.c})


@pytest.mark.asyncio
async def test_team_scope_unions_managed_teams(store: AuthorizationStore, db: AsyncSession, scenario) -> None:
    team2 = await db.get(Team, scenario.team2_id)
    await add_team_member(db, team2, scenario.b, "SALES_MANAGER")

    assert await get_team_member_ids(store, scenario.b, scenario.org_id) == frozenset(
        {scenario.b, scenario.c, scenario.d}
    )


@pytest.mark.asyncio
async def test_team_scope_empty_for_non_manager(store: AuthorizationStore, scenario) -> None:
    assert await get_team_member_ids(store, scenario.c, scenario.org_id) == frozenset()


@pytest.mark.asyncio
async def test_owner_membership_row_grants_nothing(store: AuthorizationStore, db: AsyncSession, scenario) -> None:
    owner_role = await store.get_role_by_name_and_org("OWNER", None)
    db.add(TeamMember(team_id=scenario.team2_id, user_id=scenario.outsider, role_id=owner_role.id))
    db.add(TeamMember(team_id=scenario.team2_id, user_id=scenario.weird, role="owner"))
    await db.commit()

    assert await get_user_role(store, scenario.outsider, scenario.org_id) is None
    assert await get_user_permissions(store, scenario.outsider, scenario.org_id) == frozenset()
    # Weird still resolves from the team3 row
    assert await get_user_role(store, scenario.weird, scenario.org_id) == "SUPERUSER"


@pytest.mark.asyncio
async def test_team_scope_skips_owner_rows(store: AuthorizationStore, db: AsyncSession, scenario) -> None:
    owner_role = await store.get_role_by_name_and_org("OWNER", None)
    db.add(TeamMember(team_id=scenario.team1_id, user_id=scenario.outsider, role_id=owner_role.id))
    await db.commit()

    assert await get_team_member_ids(store, scenario.b, scenario.org_id) == frozenset({scenario.b, scenario.c})

