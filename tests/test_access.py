from __future__ import annotations

from types import SimpleNamespace

import pytest

from models.account import Account, anonymous_account
from models.entity import ContentEntity
from services.access import AccessManager

REST_NODE_JSON = "rest.entity.node.GET.json"


def make_account(account_id: int = 2, permissions=(), is_admin: bool = False) -> Account:
    return Account(id=account_id, name=f"account{account_id}", permissions=list(permissions), is_admin=is_admin)


def make_node(status: bool = True, owner_id: int = 1) -> ContentEntity:
    return ContentEntity(id=10, entity_type="node", bundle="article", label="Moby Dick", status=status, owner_id=owner_id)


@pytest.fixture
def manager() -> AccessManager:
    routes = [
        SimpleNamespace(name="entity.node.canonical", requirements={"_entity_access": "node.view"}),
        SimpleNamespace(
            name=REST_NODE_JSON,
            requirements={
                "_format": "json",
                "_permission": "restful get entity:node",
                "_entity_access": "node.view",
            },
        ),
        SimpleNamespace(name="entity.node.edit", requirements={"_entity_access": "node.update"}),
        SimpleNamespace(name="health"),
    ]
    return AccessManager(routes)


class TestCheckNamedRoute:
    def test_unknown_route_is_denied(self, manager: AccessManager) -> None:
        assert manager.check_named_route("rest.entity.node.GET.xml", {"node": make_node()}, make_account(is_admin=True)) is False

    def test_route_without_requirements(self, manager: AccessManager) -> None:
        assert manager.check_named_route("health", {}, anonymous_account([])) is True

    def test_permission_and_entity_access(self, manager: AccessManager) -> None:
        reader = make_account(permissions=["access content", "restful get entity:node"])
        assert manager.check_named_route(REST_NODE_JSON, {"node": make_node()}, reader) is True

    def test_missing_permission(self, manager: AccessManager) -> None:
        account = make_account(permissions=["access content"])
        assert manager.check_named_route(REST_NODE_JSON, {"node": make_node()}, account) is False

    def test_entity_not_viewable(self, manager: AccessManager) -> None:
        reader = make_account(permissions=["access content", "restful get entity:node"])
        assert manager.check_named_route(REST_NODE_JSON, {"node": make_node(status=False)}, reader) is False

    def test_identifier_instead_of_entity_fails_closed(self, manager: AccessManager) -> None:
        admin = make_account(is_admin=True)
        assert manager.check_named_route(REST_NODE_JSON, {"node": 10}, admin) is False

    def test_only_view_is_understood(self, manager: AccessManager) -> None:
        admin = make_account(is_admin=True)
        assert manager.check_named_route("entity.node.edit", {"node": make_node()}, admin) is False

    def test_admin_passes(self, manager: AccessManager) -> None:
        admin = make_account(is_admin=True)
        assert manager.check_named_route(REST_NODE_JSON, {"node": make_node(status=False)}, admin) is True

    def test_routes_added_later_are_found(self, manager: AccessManager) -> None:
        routes = []
        late = AccessManager(routes)
        routes.append(SimpleNamespace(name="late", requirements={}))
        assert late.get_route("late") is routes[0]

    def test_routes_inside_routers_and_wrappers_are_found(self) -> None:
        rest_json = SimpleNamespace(name=REST_NODE_JSON, requirements={"_format": "json"})
        canonical = SimpleNamespace(name="entity.node.canonical", requirements={})
        nested = AccessManager(
            [
                SimpleNamespace(routes=[canonical]),
                SimpleNamespace(name=None, router=SimpleNamespace(routes=[SimpleNamespace(routes=[rest_json])])),
            ]
        )

        assert nested.get_route(REST_NODE_JSON) is rest_json
        assert nested.get_route("entity.node.canonical") is canonical
        assert list(nested.iter_routes()) == [canonical, rest_json]


class TestEntityViewAccess:
    def test_own_unpublished_content(self) -> None:
        owner = make_account(account_id=3, permissions=["access content", "view own unpublished content"])
        assert make_node(status=False, owner_id=3).can_view(owner) is True
        assert make_node(status=False, owner_id=4).can_view(owner) is False

    def test_anonymous_never_owns_content(self) -> None:
        anonymous = anonymous_account(["access content", "view own unpublished content"])
        assert make_node(status=False, owner_id=0).can_view(anonymous) is False

    def test_type_specific_permission(self) -> None:
        media = ContentEntity(id=4, entity_type="media", bundle="image", label="Whale.jpg", status=True)
        assert media.can_view(make_account(permissions=["access content"])) is False
        assert media.can_view(make_account(permissions=["view media"])) is True
