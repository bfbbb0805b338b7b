"""Interfaces the link header generators depend on.

The generators only ever talk to these protocols; the FastAPI adapters in
``utils.routing`` and the registries in ``services`` implement them, and the
tests implement them with plain in-memory fakes.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping, MutableMapping, Optional, Protocol, Sequence

from models.field import FieldDefinition
from models.rest import RestResourceConfig


class Account(Protocol):
    id: Any

    def has_permission(self, permission: str) -> bool: ...


class Entity(Protocol):
    id: Any
    entity_type: str
    bundle: str

    def get_field_value(self, field_name: str) -> Sequence["Entity"]: ...

    def can_view(self, account: Account) -> bool: ...


class Headers(Protocol):
    def get(self, key: str, default: Optional[str] = None) -> Optional[str]: ...

    def append(self, key: str, value: str) -> None: ...


class Response(Protocol):
    status_code: int
    headers: Headers


class Route(Protocol):
    methods: Optional[Iterable[str]]
    parameters: Mapping[str, Mapping[str, str]]


class RouteMatch(Protocol):
    route_name: Optional[str]

    def get_route_object(self) -> Optional[Route]: ...

    def get_parameter(self, name: str) -> Any: ...


class FieldDefinitionProvider(Protocol):
    def get_field_definitions(self, entity_type: str, bundle: str) -> Mapping[str, FieldDefinition]: ...


class RestConfigStorage(Protocol):
    def load(self, config_id: str) -> Optional[RestResourceConfig]: ...


class RouteAccessChecker(Protocol):
    def check_named_route(
        self,
        route_name: str,
        parameters: MutableMapping[str, Any],
        account: Account,
    ) -> bool: ...


class UrlGenerator(Protocol):
    def entity_url(self, entity: Entity) -> str: ...

    def route_url(self, route_name: str, parameters: Mapping[str, Any]) -> str: ...
