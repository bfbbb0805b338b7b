"""End-to-end tests of the Link headers served by the application."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from conftest import ADMIN


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def add_field(
    client: TestClient,
    field_name: str,
    label: str,
    entity_type: str = "node",
    bundle: str = "article",
    target_type: Optional[str] = None,
    field_type: str = "entity_reference",
) -> Dict[str, Any]:
    response = client.post(
        "/admin/fields/",
        json={
            "entity_type": entity_type,
            "bundle": bundle,
            "field_name": field_name,
            "label": label,
            "field_type": field_type,
            "target_type": target_type,
        },
        headers=ADMIN,
    )
    assert response.status_code == 201, response.text
    return response.json()


def create_entity(
    client: TestClient,
    entity_type: str,
    bundle: str,
    label: str,
    status: bool = True,
    fields: Optional[Dict[str, List[Dict[str, Any]]]] = None,
) -> Dict[str, Any]:
    response = client.post(
        f"/entity/{entity_type}",
        json={"bundle": bundle, "label": label, "status": status, "fields": fields or {}},
        headers=ADMIN,
    )
    assert response.status_code == 201, response.text
    return response.json()


def enable_rest(client: TestClient, entity_type: str, formats: List[str]) -> None:
    response = client.put(
        f"/admin/rest/{entity_type}",
        json={"configuration": {"GET": {"supported_formats": formats}}},
        headers=ADMIN,
    )
    assert response.status_code == 200, response.text


def ref(entity: Dict[str, Any]) -> Dict[str, Any]:
    return {"target_type": entity["entity_type"], "target_id": entity["id"]}


def links(response) -> List[str]:
    return response.headers.get_list("link")


@pytest.fixture
def article(client: TestClient) -> Dict[str, Any]:
    add_field(client, "field_author", "Author", target_type="user")
    author = create_entity(client, "user", "user", "Herman Melville")
    return create_entity(client, "node", "article", "Moby Dick", fields={"field_author": [ref(author)]})


# -----------------------------------------------------------------------------
# Related links
# -----------------------------------------------------------------------------
class TestRelatedLinks:
    def test_article_links_to_its_author(self, client: TestClient, article: Dict[str, Any]) -> None:
        author_id = article["fields"]["field_author"][0]["target_id"]

        response = client.get(f"/node/{article['id']}")

        assert response.status_code == 200
        assert response.json()["label"] == "Moby Dick"
        assert links(response) == [f'<http://testserver/user/{author_id}>; rel="related"; title="Author"']

    def test_head_carries_the_same_links(self, client: TestClient, article: Dict[str, Any]) -> None:
        get_links = links(client.get(f"/node/{article['id']}"))
        head = client.head(f"/node/{article['id']}")

        assert head.status_code == 200
        assert links(head) == get_links

    def test_multiple_fields_and_deltas_keep_their_order(self, client: TestClient) -> None:
        add_field(client, "field_tags", "Tags", target_type="taxonomy_term")
        add_field(client, "field_related", "See also")
        whale = create_entity(client, "taxonomy_term", "tags", "Whales")
        sea = create_entity(client, "taxonomy_term", "tags", "Sea")
        other = create_entity(client, "node", "article", "Typee")
        node = create_entity(
            client,
            "node",
            "article",
            "Moby Dick",
            fields={"field_tags": [ref(whale), ref(sea)], "field_related": [ref(other)]},
        )

        response = client.get(f"/node/{node['id']}")

        assert links(response) == [
            f'<http://testserver/taxonomy/term/{whale["id"]}>; rel="related"; title="Tags"',
            f'<http://testserver/taxonomy/term/{sea["id"]}>; rel="related"; title="Tags"',
            f'<http://testserver/node/{other["id"]}>; rel="related"; title="See also"',
        ]

    def test_unpublished_target_hidden_from_anonymous(self, client: TestClient) -> None:
        add_field(client, "field_related", "See also")
        draft = create_entity(client, "node", "article", "Draft", status=False)
        node = create_entity(client, "node", "article", "Moby Dick", fields={"field_related": [ref(draft)]})

        assert links(client.get(f"/node/{node['id']}")) == []
        assert links(client.get(f"/node/{node['id']}", headers=ADMIN)) == [
            f'<http://testserver/node/{draft["id"]}>; rel="related"; title="See also"'
        ]

    def test_media_responses_are_decorated(self, client: TestClient) -> None:
        add_field(client, "field_source", "Source", entity_type="media", bundle="image")
        source = create_entity(client, "node", "page", "Gallery")
        media = create_entity(client, "media", "image", "Whale.jpg", fields={"field_source": [ref(source)]})

        response = client.get(f"/media/{media['id']}")

        assert links(response) == [f'<http://testserver/node/{source["id"]}>; rel="related"; title="Source"']

    def test_other_entity_types_are_not_decorated(self, client: TestClient) -> None:
        add_field(client, "field_mentor", "Mentor", entity_type="user", bundle="user", target_type="user")
        mentor = create_entity(client, "user", "user", "Nathaniel Hawthorne")
        user = create_entity(client, "user", "user", "Herman Melville", fields={"field_mentor": [ref(mentor)]})

        response = client.get(f"/user/{user['id']}")

        assert response.status_code == 200
        assert links(response) == []

    def test_deleted_field_no_longer_links(self, client: TestClient, article: Dict[str, Any]) -> None:
        field_id = client.get("/admin/fields/", params={"bundle": "article"}, headers=ADMIN).json()[0]["id"]

        assert client.delete(f"/admin/fields/{field_id}", headers=ADMIN).status_code == 204

        assert links(client.get(f"/node/{article['id']}")) == []

    def test_deleted_target_no_longer_links(self, client: TestClient, article: Dict[str, Any]) -> None:
        author_id = article["fields"]["field_author"][0]["target_id"]

        assert client.delete(f"/entity/user/{author_id}", headers=ADMIN).status_code == 204

        assert links(client.get(f"/node/{article['id']}")) == []


# -----------------------------------------------------------------------------
# Alternate links
# -----------------------------------------------------------------------------
class TestAlternateLinks:
    def test_admin_sees_enabled_formats(self, client: TestClient, article: Dict[str, Any]) -> None:
        enable_rest(client, "node", ["json", "xml"])
        node_url = f"http://testserver/node/{article['id']}"

        response = client.get(f"/node/{article['id']}", headers=ADMIN)

        assert links(response)[1:] == [
            f'<{node_url}?_format=json>; rel="alternate"; type="application/json"',
            f'<{node_url}?_format=xml>; rel="alternate"; type="application/xml"',
        ]

    def test_anonymous_without_rest_permission_sees_none(
        self, client: TestClient, article: Dict[str, Any]
    ) -> None:
        enable_rest(client, "node", ["json", "xml"])

        response = client.get(f"/node/{article['id']}")

        assert [link for link in links(response) if 'rel="alternate"' in link] == []

    def test_account_with_rest_permission(self, client: TestClient, article: Dict[str, Any]) -> None:
        enable_rest(client, "node", ["jsonld"])
        reader = client.post(
            "/admin/accounts/",
            json={"name": "reader", "permissions": ["access content", "restful get entity:node"]},
            headers=ADMIN,
        ).json()

        response = client.get(f"/node/{article['id']}", headers={"X-Account-Id": str(reader["id"])})

        assert links(response)[-1] == (
            f'<http://testserver/node/{article["id"]}?_format=jsonld>; rel="alternate"; type="application/ld+json"'
        )

    def test_current_format_is_left_out(self, client: TestClient, article: Dict[str, Any]) -> None:
        enable_rest(client, "node", ["json", "xml"])

        response = client.get(f"/node/{article['id']}", params={"_format": "json"}, headers=ADMIN)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.json()["label"] == "Moby Dick"
        alternates = [link for link in links(response) if 'rel="alternate"' in link]
        assert alternates == [
            f'<http://testserver/node/{article["id"]}?_format=xml>; rel="alternate"; type="application/xml"'
        ]

    def test_unknown_format_is_never_advertised(self, client: TestClient, article: Dict[str, Any]) -> None:
        enable_rest(client, "node", ["yaml", "json"])

        response = client.get(f"/node/{article['id']}", headers=ADMIN)

        assert [link for link in links(response) if "_format=yaml" in link] == []
        assert len([link for link in links(response) if 'rel="alternate"' in link]) == 1

    def test_disabled_format_is_not_found(self, client: TestClient, article: Dict[str, Any]) -> None:
        enable_rest(client, "node", ["json"])

        response = client.get(f"/node/{article['id']}", params={"_format": "xml"}, headers=ADMIN)

        assert response.status_code == 404
        assert links(response) == []

    def test_removed_config_stops_alternates(self, client: TestClient, article: Dict[str, Any]) -> None:
        enable_rest(client, "node", ["json"])
        assert client.delete("/admin/rest/node", headers=ADMIN).status_code == 204

        response = client.get(f"/node/{article['id']}", headers=ADMIN)

        assert [link for link in links(response) if 'rel="alternate"' in link] == []


# -----------------------------------------------------------------------------
# Undecorated responses
# -----------------------------------------------------------------------------
class TestUndecoratedResponses:
    def test_not_modified(self, client: TestClient, article: Dict[str, Any]) -> None:
        etag = client.get(f"/node/{article['id']}").headers["etag"]

        response = client.get(f"/node/{article['id']}", headers={"If-None-Match": etag})

        assert response.status_code == 304
        assert links(response) == []

    def test_missing_entity(self, client: TestClient) -> None:
        response = client.get("/node/999")
        assert response.status_code == 404
        assert links(response) == []

    def test_unpublished_subject_is_forbidden(self, client: TestClient) -> None:
        draft = create_entity(client, "node", "article", "Draft", status=False)
        response = client.get(f"/node/{draft['id']}")
        assert response.status_code == 403
        assert links(response) == []


# -----------------------------------------------------------------------------
# Administration
# -----------------------------------------------------------------------------
class TestAdministration:
    def test_anonymous_cannot_configure(self, client: TestClient) -> None:
        response = client.post(
            "/admin/fields/",
            json={"entity_type": "node", "bundle": "article", "field_name": "field_x", "label": "X"},
        )
        assert response.status_code == 403

    def test_unknown_account_is_rejected(self, client: TestClient) -> None:
        response = client.get("/admin/fields/", headers={"X-Account-Id": "999"})
        assert response.status_code == 403

    def test_duplicate_field(self, client: TestClient) -> None:
        add_field(client, "field_author", "Author")
        response = client.post(
            "/admin/fields/",
            json={"entity_type": "node", "bundle": "article", "field_name": "field_author", "label": "Writer"},
            headers=ADMIN,
        )
        assert response.status_code == 409

    def test_base_field_names_are_reserved(self, client: TestClient) -> None:
        response = client.post(
            "/admin/fields/",
            json={"entity_type": "node", "bundle": "article", "field_name": "uid", "label": "Owner"},
            headers=ADMIN,
        )
        assert response.status_code == 400

    def test_reference_to_wrong_target_type(self, client: TestClient) -> None:
        add_field(client, "field_author", "Author", target_type="user")
        other = create_entity(client, "node", "article", "Typee")

        response = client.post(
            "/entity/node",
            json={"bundle": "article", "label": "Moby Dick", "fields": {"field_author": [ref(other)]}},
            headers=ADMIN,
        )
        assert response.status_code == 400

    def test_reference_to_missing_entity(self, client: TestClient) -> None:
        add_field(client, "field_author", "Author", target_type="user")

        response = client.post(
            "/entity/node",
            json={
                "bundle": "article",
                "label": "Moby Dick",
                "fields": {"field_author": [{"target_type": "user", "target_id": 999}]},
            },
            headers=ADMIN,
        )
        assert response.status_code == 400

    def test_field_definitions_list_base_fields_first(self, client: TestClient) -> None:
        add_field(client, "field_author", "Author")

        response = client.get("/admin/fields/definitions/node/article", headers=ADMIN)

        names = [definition["name"] for definition in response.json()]
        assert names == ["id", "label", "status", "uid", "created", "changed", "field_author"]

    def test_rest_config_round_trip(self, client: TestClient) -> None:
        enable_rest(client, "media", ["hal_json"])

        response = client.get("/admin/rest/media", headers=ADMIN)

        assert response.status_code == 200
        assert response.json()["configuration"]["GET"]["supported_formats"] == ["hal_json"]
        assert client.get("/admin/rest/node", headers=ADMIN).status_code == 404


# -----------------------------------------------------------------------------
# Wiring
# -----------------------------------------------------------------------------
class TestWiring:
    def test_access_manager_finds_rest_routes(self, client: TestClient) -> None:
        access = client.app.state.access_manager

        for entity_type in ("node", "media"):
            for format in ("json", "jsonld", "hal_json", "xml"):
                route = access.get_route(f"rest.entity.{entity_type}.GET.{format}")
                assert route is not None
                assert route.requirements["_format"] == format

        assert access.get_route("entity.node.canonical") is not None

    def test_crud_routes_ignore_format_query(self, client: TestClient) -> None:
        response = client.post(
            "/entity/node",
            params={"_format": "json"},
            json={"bundle": "article", "label": "Moby Dick"},
            headers=ADMIN,
        )
        assert response.status_code == 201, response.text

        node_id = response.json()["id"]
        response = client.patch(
            f"/entity/node/{node_id}", params={"_format": "json"}, json={"label": "Typee"}, headers=ADMIN
        )
        assert response.status_code == 200
        assert response.json()["label"] == "Typee"


# -----------------------------------------------------------------------------
# Response bodies
# -----------------------------------------------------------------------------
class TestResponseBodies:
    @pytest.fixture
    def reader_headers(self, client: TestClient) -> Dict[str, str]:
        reader = client.post(
            "/admin/accounts/",
            json={"name": "reader", "permissions": ["access content", "restful get entity:node"]},
            headers=ADMIN,
        ).json()
        return {"X-Account-Id": str(reader["id"])}

    @pytest.fixture
    def node_with_draft(self, client: TestClient) -> Dict[str, Any]:
        add_field(client, "field_related", "See also")
        enable_rest(client, "node", ["json", "jsonld", "hal_json", "xml"])
        draft = create_entity(client, "node", "article", "Draft", status=False)
        published = create_entity(client, "node", "article", "Typee")
        return create_entity(
            client,
            "node",
            "article",
            "Moby Dick",
            fields={"field_related": [ref(draft), ref(published)]},
        )

    def test_canonical_body_hides_unviewable_references(
        self, client: TestClient, node_with_draft: Dict[str, Any]
    ) -> None:
        published_id = node_with_draft["fields"]["field_related"][1]["target_id"]

        response = client.get(f"/node/{node_with_draft['id']}")

        assert response.json()["fields"] == {
            "field_related": [{"target_type": "node", "target_id": published_id}]
        }
        assert links(response) == [
            f'<http://testserver/node/{published_id}>; rel="related"; title="See also"'
        ]

    def test_admin_body_lists_every_reference(
        self, client: TestClient, node_with_draft: Dict[str, Any]
    ) -> None:
        response = client.get(f"/node/{node_with_draft['id']}", headers=ADMIN)
        assert len(response.json()["fields"]["field_related"]) == 2

    def test_rest_bodies_hide_unviewable_references(
        self, client: TestClient, node_with_draft: Dict[str, Any], reader_headers: Dict[str, str]
    ) -> None:
        draft_id, published_id = (item["target_id"] for item in node_with_draft["fields"]["field_related"])
        path = f"/node/{node_with_draft['id']}"

        hal = client.get(path, params={"_format": "hal_json"}, headers=reader_headers).json()
        assert hal["_links"]["field_related"] == [{"href": f"http://testserver/node/{published_id}"}]

        jsonld = client.get(path, params={"_format": "jsonld"}, headers=reader_headers).json()
        assert jsonld["field_related"] == [{"@id": f"http://testserver/node/{published_id}"}]

        plain = client.get(path, params={"_format": "json"}, headers=reader_headers).json()
        assert [item["target_id"] for item in plain["fields"]["field_related"]] == [published_id]

        xml = client.get(path, params={"_format": "xml"}, headers=reader_headers).text
        assert f'target_id="{draft_id}"' not in xml
        assert f'target_id="{published_id}"' in xml
