"""Link header decoration for node and media responses.

For a response about a node or media entity, two kinds of ``Link`` header
values are added:

- ``rel="related"`` links to every entity referenced by the subject's
  configured (non base) entity reference fields, titled with the field label;
- ``rel="alternate"`` links to the REST representations of the subject that
  are enabled for its entity type, typed with the format's MIME type.

Every link is subject to an access check for the acting account, so headers
never disclose entities or endpoints the account cannot reach.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

import structlog

from models.field import FieldType
from models.link import FORMAT_MIME_TYPES, LinkHeaderValue, LinkRelation, ObjectType
from models.rest import rest_config_id
from services.contracts import (
    Account,
    Entity,
    FieldDefinitionProvider,
    Response,
    RestConfigStorage,
    RouteAccessChecker,
    RouteMatch,
    UrlGenerator,
)

logger = structlog.get_logger(__name__)

LINK_HEADER = "Link"
CACHE_HIT = "HIT"
READ_METHODS = frozenset({"GET", "HEAD"})


def rest_route_name(entity_type: str, format: str, method: str = "GET") -> str:
    return f"rest.entity.{entity_type}.{method}.{format}"


# -----------------------------------------------------------------------------
# Subject resolution
# -----------------------------------------------------------------------------
def resolve_subject(
    response: Response,
    route_match: RouteMatch,
    object_type: Optional[str],
    cache_header: str = "X-Dynamic-Cache",
) -> Optional[Entity]:
    """Return the node or media entity the response is about, if it qualifies.

    Checks run cheapest first and stop at the first failure:

    1. ``object_type`` is ``node`` or ``media``;
    2. the response was not served from the dynamic cache;
    3. the response status is 2xx;
    4. the matched route accepts GET or HEAD;
    5. the route declares an entity parameter named ``object_type``;
    6. that parameter is bound to an entity.
    """
    if object_type not in (ObjectType.NODE.value, ObjectType.MEDIA.value):
        return None

    if response.headers.get(cache_header) == CACHE_HIT:
        return None

    if not 200 <= response.status_code < 300:
        return None

    route = route_match.get_route_object()
    if route is None:
        return None

    if READ_METHODS.isdisjoint(route.methods or ()):
        return None

    parameters = route.parameters
    if not parameters or object_type not in parameters:
        return None

    entity = route_match.get_parameter(object_type)
    if not entity:
        return None

    return entity


# -----------------------------------------------------------------------------
# Generators
# -----------------------------------------------------------------------------
def generate_reference_links(
    entity: Entity,
    field_definitions: FieldDefinitionProvider,
    account: Account,
    urls: UrlGenerator,
) -> List[LinkHeaderValue]:
    """One ``related`` link per viewable entity referenced by a configured field.

    Base fields are skipped even when they hold references (e.g. ``uid``).
    Links follow field order, then delta order within each field; an entity
    referenced from several fields gets one link per field.
    """
    definitions = field_definitions.get_field_definitions(entity.entity_type, entity.bundle)

    links: List[LinkHeaderValue] = []
    for field_name, definition in definitions.items():
        if definition.is_base_field or definition.field_type != FieldType.ENTITY_REFERENCE:
            continue

        for referenced in entity.get_field_value(field_name):
            # Headers are subject to an access check
            if not referenced.can_view(account):
                continue
            links.append(
                LinkHeaderValue(
                    href=urls.entity_url(referenced),
                    rel=LinkRelation.RELATED,
                    title=definition.label,
                )
            )

    return links


def generate_alternate_links(
    entity: Entity,
    current_route_name: Optional[str],
    account: Account,
    rest_configs: RestConfigStorage,
    access: RouteAccessChecker,
    urls: UrlGenerator,
) -> List[LinkHeaderValue]:
    """One ``alternate`` link per enabled REST format the account may GET.

    The format currently being served and formats without a known MIME type
    are left out.
    """
    config = rest_configs.load(rest_config_id(entity.entity_type))
    if config is None:
        return []

    links: List[LinkHeaderValue] = []
    for format in config.supported_formats("GET"):
        mime = FORMAT_MIME_TYPES.get(format)
        if mime is None:
            logger.debug(
                "link_headers.unknown_format",
                entity_type=entity.entity_type,
                format=format,
            )
            continue

        route_name = rest_route_name(entity.entity_type, format)
        if route_name == current_route_name:
            continue

        if not access.check_named_route(route_name, {entity.entity_type: entity}, account):
            continue

        url = urls.route_url(route_name, {entity.entity_type: entity.id})
        links.append(
            LinkHeaderValue(
                href=f"{url}?_format={format}",
                rel=LinkRelation.ALTERNATE,
                type=mime,
            )
        )

    return links


# -----------------------------------------------------------------------------
# Decorator
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class LinkHeaderDecorator:
    """Adds Link headers to responses about one object type."""

    object_type: ObjectType
    field_definitions: FieldDefinitionProvider
    rest_configs: RestConfigStorage
    access: RouteAccessChecker
    cache_header: str = "X-Dynamic-Cache"

    def links_for(
        self,
        response: Response,
        route_match: RouteMatch,
        account: Account,
        urls: UrlGenerator,
    ) -> List[LinkHeaderValue]:
        entity = resolve_subject(response, route_match, self.object_type.value, self.cache_header)
        if entity is None:
            return []

        return [
            *generate_reference_links(entity, self.field_definitions, account, urls),
            *generate_alternate_links(
                entity,
                route_match.route_name,
                account,
                self.rest_configs,
                self.access,
                urls,
            ),
        ]

    def on_response(
        self,
        response: Response,
        route_match: RouteMatch,
        account: Account,
        urls: UrlGenerator,
    ) -> List[LinkHeaderValue]:
        """Append the Link headers for this response and return them.

        The full list is built before the response is touched, so a failing
        collaborator leaves the headers as they were.
        """
        links = self.links_for(response, route_match, account, urls)
        for link in links:
            response.headers.append(LINK_HEADER, str(link))

        if links:
            logger.debug(
                "link_headers.added",
                object_type=self.object_type.value,
                route=route_match.route_name,
                count=len(links),
            )
        return links


def build_link_header_decorators(
    object_types: Iterable[Any],
    field_definitions: FieldDefinitionProvider,
    rest_configs: RestConfigStorage,
    access: RouteAccessChecker,
    cache_header: str = "X-Dynamic-Cache",
) -> List[LinkHeaderDecorator]:
    """One decorator per configured object type, duplicates dropped."""
    decorators: List[LinkHeaderDecorator] = []
    seen = set()
    for object_type in object_types:
        object_type = ObjectType(object_type)
        if object_type in seen:
            continue
        seen.add(object_type)
        decorators.append(
            LinkHeaderDecorator(
                object_type=object_type,
                field_definitions=field_definitions,
                rest_configs=rest_configs,
                access=access,
                cache_header=cache_header,
            )
        )
    return decorators
