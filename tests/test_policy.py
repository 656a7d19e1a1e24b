from itertools import product
from types import SimpleNamespace

import pytest

from app.features.leads.models import Lead
from app.features.permissions.context import OrganizationContext
from app.features.permissions.policy import (
    can_delete_resource,
    can_modify_resource,
    can_read_resource,
    get_visible_resources,
)


ORG = "org-1"
USERS = ("owner", "manager", "rep", "rep2", "other")


def make_context(role: str, user_id: str = "manager", team: set[str] | None = None) -> OrganizationContext:
    return OrganizationContext(
        organization_id=ORG,
        user_id=user_id,
        role=role,
        permissions=frozenset(),
        team_member_ids=frozenset(team) if team is not None else None,
    )


def make_resource(user_id: str | None, assigned_to: str | None = None, organization_id: str | None = ORG):
    return SimpleNamespace(id=f"{user_id}-{assigned_to}", organization_id=organization_id, user_id=user_id, assigned_to=assigned_to)


ALL_RESOURCES = [make_resource(owner, assignee) for owner, assignee in product(USERS, (None, *USERS))]

CONTEXTS = [
    make_context("OWNER", "owner"),
    make_context("ADMIN", "owner"),
    make_context("VIEWER", "other"),
    make_context("SALES_MANAGER", "manager", {"manager", "rep"}),
    make_context("SALES_MANAGER", "manager", None),
    make_context("SALES_REP", "rep"),
    make_context("SUPERUSER", "rep"),
    make_context("sales_rep", "rep"),
    make_context("", "rep"),
]


@pytest.mark.parametrize("context", CONTEXTS, ids=lambda c: f"{c.role or 'empty'}-{c.user_id}")
def test_read_agrees_with_visible(context: OrganizationContext) -> None:
    visible = get_visible_resources(context, ALL_RESOURCES)

    for resource in ALL_RESOURCES:
        assert can_read_resource(context, resource) == (resource in visible)


@pytest.mark.parametrize("role", ["OWNER", "ADMIN", "VIEWER"])
def test_full_read_roles_see_everything(role: str) -> None:
    context = make_context(role, "other")

    assert get_visible_resources(context, ALL_RESOURCES) == ALL_RESOURCES


def test_viewer_reads_but_never_mutates() -> None:
    context = make_context("VIEWER", "other")

    for resource in ALL_RESOURCES:
        assert can_read_resource(context, resource)
        assert not can_modify_resource(context, resource)
        assert not can_delete_resource(context, resource)


@pytest.mark.parametrize("role", ["OWNER", "ADMIN"])
def test_owner_and_admin_mutate_everything(role: str) -> None:
    context = make_context(role, "owner")

    for resource in ALL_RESOURCES:
        assert can_modify_resource(context, resource)
        assert can_delete_resource(context, resource)


def test_rep_sees_own_and_assigned() -> None:
    context = make_context("SALES_REP", "rep")

    assert can_read_resource(context, make_resource("rep"))
    assert can_read_resource(context, make_resource("other", "rep"))
    assert not can_read_resource(context, make_resource("other", "rep2"))
    assert not can_read_resource(context, make_resource(None, None))


def test_rep_may_edit_but_never_delete() -> None:
    context = make_context("SALES_REP", "rep")

    for resource in ALL_RESOURCES:
        assert not can_delete_resource(context, resource)
    assert can_modify_resource(context, make_resource("rep"))
    assert can_modify_resource(context, make_resource("other", "rep"))
    assert not can_modify_resource(context, make_resource("other"))


def test_manager_scope_rules() -> None:
    context = make_context("SALES_MANAGER", "manager", {"manager", "rep"})

    owned_in_scope = make_resource("rep")
    assigned_in_scope = make_resource("rep2", "rep")
    out_of_scope = make_resource("rep2", "other")

    assert can_read_resource(context, owned_in_scope)
    assert can_modify_resource(context, owned_in_scope)
    assert can_delete_resource(context, owned_in_scope)

    assert can_read_resource(context, assigned_in_scope)
    assert can_modify_resource(context, assigned_in_scope)
    assert not can_delete_resource(context, assigned_in_scope)

    assert not can_read_resource(context, out_of_scope)
    assert not can_modify_resource(context, out_of_scope)
    assert not can_delete_resource(context, out_of_scope)


def test_manager_without_scope_sees_nothing() -> None:
    context = make_context("SALES_MANAGER", "manager", None)

    assert get_visible_resources(context, ALL_RESOURCES) == []
    assert not any(can_modify_resource(context, r) for r in ALL_RESOURCES)


@pytest.mark.parametrize("role", ["SUPERUSER", "sales_rep", "", "owner"])
def test_unknown_role_fails_closed(role: str) -> None:
    context = make_context(role, "rep", {"rep"})

    assert get_visible_resources(context, ALL_RESOURCES) == []
    for resource in ALL_RESOURCES:
        assert not can_read_resource(context, resource)
        assert not can_modify_resource(context, resource)
        assert not can_delete_resource(context, resource)


def test_other_organization_is_refused() -> None:
    foreign = make_resource("rep", organization_id="org-2")

    for context in CONTEXTS:
        assert not can_read_resource(context, foreign)
        assert not can_modify_resource(context, foreign)
        assert not can_delete_resource(context, foreign)


def test_resource_without_organization_is_judged_by_ownership() -> None:
    context = make_context("SALES_REP", "rep")

    assert can_read_resource(context, make_resource("rep", organization_id=None))


def test_mapping_and_camel_case_resources() -> None:
    context = make_context("SALES_MANAGER", "manager", {"rep"})

    assert can_read_resource(context, {"organization_id": ORG, "user_id": "rep", "assigned_to": None})
    assert can_modify_resource(context, {"organizationId": ORG, "userId": "other", "assignedTo": "rep"})
    assert not can_delete_resource(context, {"organizationId": ORG, "userId": "other", "assignedTo": "rep"})
    assert not can_read_resource(context, {"organizationId": "org-2", "userId": "rep"})


def test_lead_scenarios_with_model_instances() -> None:
    # B manages {B, C}; L1 created by C, L2 created by D and assigned to C
    context = make_context("SALES_MANAGER", "B", {"B", "C"})
    l1 = Lead(id="L1", organization_id=ORG, user_id="C", assigned_to=None, title="L1")
    l2 = Lead(id="L2", organization_id=ORG, user_id="D", assigned_to="C", title="L2")

    assert can_modify_resource(context, l1)
    assert can_delete_resource(context, l1)
    assert can_modify_resource(context, l2)
    assert not can_delete_resource(context, l2)


def test_visible_preserves_order() -> None:
    context = make_context("SALES_REP", "rep")
    resources = [make_resource("rep", None), make_resource("other"), make_resource("other", "rep")]

    assert get_visible_resources(context, resources) == [resources[0], resources[2]]
