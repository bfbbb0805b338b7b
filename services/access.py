from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping, Optional

import structlog
from starlette.routing import BaseRoute

from services.contracts import Account

logger = structlog.get_logger(__name__)


class AccessManager:
    """Checks route requirements against an account.

    Understood requirements:

    - ``_permission``: the account must hold the permission;
    - ``_entity_access``: ``<parameter>.<operation>``; the entity bound to the
      parameter must allow the operation for the account (only ``view``).

    Parameters that are not entity objects cannot be checked for entity
    access and fail closed.
    """

    def __init__(self, routes: Iterable[Any]) -> None:
        self._routes = routes

    def iter_routes(self) -> Iterator[BaseRoute]:
        """Every route reachable from the given routes, routers and mounts."""
        return _walk(self._routes)

    def get_route(self, route_name: str) -> Optional[BaseRoute]:
        for route in self.iter_routes():
            if getattr(route, "name", None) == route_name:
                return route
        return None

    def check_named_route(
        self,
        route_name: str,
        parameters: Mapping[str, Any],
        account: Account,
    ) -> bool:
        route = self.get_route(route_name)
        if route is None:
            return False
        return self.check(route, parameters, account)

    def check(self, route: BaseRoute, parameters: Mapping[str, Any], account: Account) -> bool:
        requirements: Mapping[str, str] = getattr(route, "requirements", {}) or {}

        permission = requirements.get("_permission")
        if permission and not account.has_permission(permission):
            return False

        entity_access = requirements.get("_entity_access")
        if entity_access:
            parameter, _, operation = entity_access.partition(".")
            entity = parameters.get(parameter)
            if operation != "view" or not hasattr(entity, "can_view"):
                logger.debug("access.entity_unresolved", route=getattr(route, "name", None), requirement=entity_access)
                return False
            if not entity.can_view(account):
                return False

        return True


def _walk(routes: Iterable[Any]) -> Iterator[BaseRoute]:
    # Routers, mounts and included router wrappers hold their routes
    # under .routes or .router.routes
    for route in routes:
        nested = getattr(route, "routes", None)
        if nested is None:
            nested = getattr(getattr(route, "router", None), "routes", None)
        if nested is not None:
            yield from _walk(nested)
        else:
            yield route
