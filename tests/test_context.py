import dataclasses

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.service import add_team_member, create_organization_for_user
from app.features.permissions.context import OrganizationContext, get_context, get_primary_organization_id
from app.features.permissions.registry import ROLE_REGISTRY
from app.features.permissions.storage import AuthorizationStore

from conftest import create_user


@pytest.mark.asyncio
async def test_context_for_sales_manager_carries_team_scope(store: AuthorizationStore, scenario) -> None:
    context = await get_context(store, scenario.b, scenario.org_id)

    assert context is not None
    assert context.organization_id == scenario.org_id
    assert context.user_id == scenario.b
    assert context.role == "SALES_MANAGER"
    assert context.permissions == frozenset(ROLE_REGISTRY["SALES_MANAGER"].permissions)
    assert context.team_member_ids == frozenset({scenario.b, scenario.c})


@pytest.mark.asyncio
@pytest.mark.parametrize("member", ["a", "c", "d", "admin", "viewer", "weird"])
async def test_team_scope_only_set_for_managers(store: AuthorizationStore, scenario, member: str) -> None:
    context = await get_context(store, getattr(scenario, member), scenario.org_id)

    assert context is not None
    assert context.team_member_ids is None


@pytest.mark.asyncio
async def test_unrecognized_role_yields_context_without_permissions(store: AuthorizationStore, scenario) -> None:
    context = await get_context(store, scenario.weird, scenario.org_id)

    assert context is not None
    assert context.role == "SUPERUSER"
    assert context.permissions == frozenset()


@pytest.mark.asyncio
async def test_no_context_without_relationship(store: AuthorizationStore, scenario) -> None:
    assert await get_context(store, scenario.outsider, scenario.org_id) is None
    assert await get_context(store, scenario.outsider) is None
    assert await get_context(store, scenario.b, "01UNKNOWNORGANIZATION00000") is None


@pytest.mark.asyncio
async def test_context_defaults_to_primary_organization(store: AuthorizationStore, scenario) -> None:
    context = await get_context(store, scenario.c)

    assert context is not None
    assert context.organization_id == scenario.org_id
    assert context.role == "SALES_REP"


@pytest.mark.asyncio
async def test_primary_organization_prefers_earliest_owned(
    store: AuthorizationStore, db: AsyncSession, scenario
) -> None:
    # C is a member of Acme but owns a newer organization: owned wins
    own_org, _ = await create_organization_for_user(db, scenario.c, "C Corp")
    await create_organization_for_user(db, scenario.c, "C Corp II")

    assert await get_primary_organization_id(store, scenario.c) == own_org.id
    assert await get_primary_organization_id(store, scenario.a) == scenario.org_id


@pytest.mark.asyncio
async def test_primary_organization_falls_back_to_earliest_membership(
    store: AuthorizationStore, db: AsyncSession, scenario
) -> None:
    other_owner = await create_user(db, "Later")
    _, later_team = await create_organization_for_user(db, other_owner.id, "Later Inc")
    await add_team_member(db, later_team, scenario.outsider, "VIEWER")

    assert await get_primary_organization_id(store, scenario.outsider) == later_team.organization_id

    # Acme is older, so it takes over regardless of join order
    acme_team = await store.get_team(scenario.team1_id)
    await add_team_member(db, acme_team, scenario.outsider, "SALES_REP")

    assert await get_primary_organization_id(store, scenario.outsider) == scenario.org_id


@pytest.mark.asyncio
async def test_primary_organization_none_without_organizations(store: AuthorizationStore, scenario) -> None:
    assert await get_primary_organization_id(store, scenario.outsider) is None


@pytest.mark.asyncio
async def test_membership_changes_are_seen_by_next_resolution(
    store: AuthorizationStore, db: AsyncSession, scenario
) -> None:
    team2 = await store.get_team(scenario.team2_id)
    await add_team_member(db, team2, scenario.b, "SALES_MANAGER")

    context = await get_context(store, scenario.b, scenario.org_id)

    assert context is not None
    assert context.team_member_ids == frozenset({scenario.b, scenario.c, scenario.d})


def test_context_is_immutable() -> None:
    context = OrganizationContext(organization_id="org", user_id="u", role="SALES_REP")

    with pytest.raises(dataclasses.FrozenInstanceError):
        context.role = "OWNER"  # type: ignore[misc]


def test_context_permission_helpers() -> None:
    context = OrganizationContext(
        organization_id="org",
        user_id="u",
        role="SALES_REP",
        permissions=frozenset({"leads.read_own", "leads.write_own"}),
    )

    assert context.has_permission("leads.read_own")
    assert not context.has_permission("leads.delete")
    assert context.has_any_permission(["leads.read", "leads.read_own"])
    assert not context.has_all_permissions(["leads.read", "leads.read_own"])
