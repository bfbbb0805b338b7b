from __future__ import annotations

from typing import Any, Callable, Dict, Mapping, Optional

import structlog
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.routing import APIRoute
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import URL, QueryParams
from starlette.routing import Match
from starlette.types import Scope

from config.settings import settings
from models.account import Account
from models.entity import ContentEntity, ENTITY_TYPES
from services.access import AccessManager
from services.database import get_db
from services.entities import load_entity
from services.fields import FieldDefinitionRegistry
from services.rest_config import RestResourceConfigStorage
from utils.auth import get_current_account, get_request_account

DEFAULT_FORMAT = "html"
REQUIREMENTS_KEY = "x-requirements"


def request_format(scope: Scope) -> str:
    query = QueryParams(scope.get("query_string", b"").decode("latin-1"))
    return query.get("_format") or DEFAULT_FORMAT


# -----------------------------------------------------------------------------
# Entity route
# -----------------------------------------------------------------------------
class EntityRoute(APIRoute):
    """APIRoute that knows its entity parameters and requirements.

    Requirements are declared with ``openapi_extra={"x-requirements": {...}}``
    so they survive ``include_router``. A route only matches requests whose
    ``_format`` query value equals its ``_format`` requirement (``html`` when
    absent), so the canonical and REST routes of an entity share a path.
    Every response it produces goes through the app's link header decorators.
    """

    def __init__(self, path: str, endpoint: Callable[..., Any], **kwargs: Any) -> None:
        super().__init__(path, endpoint, **kwargs)
        extra = self.openapi_extra or {}
        self.requirements: Dict[str, str] = dict(extra.get(REQUIREMENTS_KEY, {}))
        self.parameters: Dict[str, Dict[str, str]] = {
            name: {"type": f"entity:{name}"}
            for name in self.param_convertors
            if name in ENTITY_TYPES
        }

    @property
    def format(self) -> str:
        return self.requirements.get("_format", DEFAULT_FORMAT)

    def matches(self, scope: Scope) -> tuple[Match, Scope]:
        match, child_scope = super().matches(scope)
        if match != Match.NONE and request_format(scope) != self.format:
            return Match.NONE, {}
        return match, child_scope

    def get_route_handler(self) -> Callable:
        original_route_handler = super().get_route_handler()

        async def link_header_route_handler(request: Request) -> Response:
            with structlog.contextvars.bound_contextvars(
                route=self.name,
                request_format=request_format(request.scope),
            ):
                response = await original_route_handler(request)
                decorate_response(request, response, self)
            return response

        return link_header_route_handler


# -----------------------------------------------------------------------------
# Request adapters
# -----------------------------------------------------------------------------
class RequestRouteMatch:
    """The matched route of a request and the entities bound to it."""

    def __init__(self, request: Request, route: Optional[APIRoute]) -> None:
        self.request = request
        self.route = route

    @property
    def route_name(self) -> Optional[str]:
        return self.route.name if self.route is not None else None

    def get_route_object(self) -> Optional[APIRoute]:
        return self.route

    def get_parameter(self, name: str) -> Any:
        return getattr(self.request.state, "route_entities", {}).get(name)


def bind_route_entity(request: Request, name: str, entity: ContentEntity) -> None:
    if not hasattr(request.state, "route_entities"):
        request.state.route_entities = {}
    request.state.route_entities[name] = entity


class UrlGenerator:
    """Absolute URLs for named routes of the running app."""

    def __init__(self, request: Request, base_url: Optional[str] = None) -> None:
        self.request = request
        self.base_url = URL(base_url) if base_url else None

    def route_url(self, route_name: str, parameters: Mapping[str, Any]) -> str:
        url = self.request.url_for(route_name, **parameters)
        if self.base_url is not None:
            url = url.replace(scheme=self.base_url.scheme, netloc=self.base_url.netloc)
        return str(url)

    def entity_url(self, entity: ContentEntity) -> str:
        return self.route_url(
            f"entity.{entity.entity_type}.canonical",
            {entity.entity_type: entity.id},
        )


def decorate_response(request: Request, response: Response, route: APIRoute) -> None:
    decorators = getattr(request.app.state, "link_header_decorators", ())
    if not decorators:
        return

    route_match = RequestRouteMatch(request, route)
    account = get_request_account(request)
    urls = UrlGenerator(request, settings.PUBLIC_BASE_URL)
    for decorator in decorators:
        decorator.on_response(response, route_match, account, urls)


# -----------------------------------------------------------------------------
# App state dependencies
# -----------------------------------------------------------------------------
def get_field_registry(request: Request) -> FieldDefinitionRegistry:
    return request.app.state.field_registry


def get_rest_configs(request: Request) -> RestResourceConfigStorage:
    return request.app.state.rest_configs


def get_access_manager(request: Request) -> AccessManager:
    return request.app.state.access_manager


# -----------------------------------------------------------------------------
# Entity parameter upcasting
# -----------------------------------------------------------------------------
def entity_loader(entity_type: str):
    """Dependency loading the entity bound to the ``entity_type`` path parameter.

    Enforces the matched route's requirements and binds the entity to the
    request, which is where the link header decorators look for it.
    """
    async def load(
        request: Request,
        db: AsyncSession = Depends(get_db),
        account: Account = Depends(get_current_account),
        access: AccessManager = Depends(get_access_manager),
    ) -> ContentEntity:
        entity_id = request.path_params.get(entity_type)
        entity = await load_entity(db, entity_type, entity_id) if entity_id is not None else None
        if entity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type} not found")

        route = request.scope.get("route")
        if route is not None and not access.check(route, {entity_type: entity}, account):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

        bind_route_entity(request, entity_type, entity)
        return entity

    return load
