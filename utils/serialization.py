from __future__ import annotations

import json
from typing import Any, Callable, Dict, List
from xml.etree import ElementTree

from models.account import Account
from models.entity import ContentEntity
from models.link import FORMAT_MIME_TYPES
from services.entities import read_entity
from utils.routing import UrlGenerator

Normalizer = Callable[[ContentEntity, UrlGenerator, Account], Dict[str, Any]]


def _viewable_targets(entity: ContentEntity, field_name: str, account: Account) -> List[ContentEntity]:
    return [target for target in entity.get_field_value(field_name) if target.can_view(account)]


# -----------------------------------------------------------------------------
# Normalizers
# -----------------------------------------------------------------------------
def normalize_json(entity: ContentEntity, urls: UrlGenerator, account: Account) -> Dict[str, Any]:
    return read_entity(entity, account).model_dump(mode="json")


def normalize_jsonld(entity: ContentEntity, urls: UrlGenerator, account: Account) -> Dict[str, Any]:
    data = normalize_json(entity, urls, account)
    fields = data.pop("fields")
    document: Dict[str, Any] = {
        "@context": {"@vocab": "https://schema.org/", "label": "name"},
        "@id": urls.entity_url(entity),
        "@type": f"{entity.entity_type}:{entity.bundle}",
        **data,
    }
    for field_name in fields:
        document[field_name] = [
            {"@id": urls.entity_url(target)}
            for target in _viewable_targets(entity, field_name, account)
        ]
    return document


def normalize_hal_json(entity: ContentEntity, urls: UrlGenerator, account: Account) -> Dict[str, Any]:
    data = normalize_json(entity, urls, account)
    fields = data.pop("fields")
    self_url = urls.route_url(
        f"rest.entity.{entity.entity_type}.GET.hal_json",
        {entity.entity_type: entity.id},
    )
    links: Dict[str, Any] = {"self": {"href": f"{self_url}?_format=hal_json"}}
    for field_name in fields:
        links[field_name] = [
            {"href": urls.entity_url(target)}
            for target in _viewable_targets(entity, field_name, account)
        ]
    return {"_links": links, **data}


# -----------------------------------------------------------------------------
# Encoders
# -----------------------------------------------------------------------------
def _json_encoder(normalizer: Normalizer):
    def encode(entity: ContentEntity, urls: UrlGenerator, account: Account) -> str:
        return json.dumps(normalizer(entity, urls, account))
    return encode


def encode_xml(entity: ContentEntity, urls: UrlGenerator, account: Account) -> str:
    data = normalize_json(entity, urls, account)
    root = ElementTree.Element("response")
    for key, value in data.items():
        element = ElementTree.SubElement(root, key)
        if key == "fields":
            for field_name, items in value.items():
                field = ElementTree.SubElement(element, "field", name=field_name)
                for item in items:
                    ElementTree.SubElement(
                        field,
                        "item",
                        target_type=item["target_type"],
                        target_id=str(item["target_id"]),
                    )
        elif key == "values":
            for field_name, field_value in value.items():
                ElementTree.SubElement(element, "value", name=field_name).text = str(field_value)
        elif value is not None:
            element.text = str(value).lower() if isinstance(value, bool) else str(value)
    return ElementTree.tostring(root, encoding="unicode", xml_declaration=True)


ENCODERS: Dict[str, Callable[[ContentEntity, UrlGenerator, Account], str]] = {
    "json": _json_encoder(normalize_json),
    "jsonld": _json_encoder(normalize_jsonld),
    "hal_json": _json_encoder(normalize_hal_json),
    "xml": encode_xml,
}


def serialize(
    entity: ContentEntity,
    format: str,
    urls: UrlGenerator,
    account: Account,
) -> tuple[str, str]:
    """Return (body, media type) of the entity in the given format, as the account may see it."""
    return ENCODERS[format](entity, urls, account), FORMAT_MIME_TYPES[format]
