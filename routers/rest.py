from fastapi import APIRouter, HTTPException, Depends, Request, Response, status

from config.settings import settings
from models.account import Account
from models.entity import ContentEntity, ENTITY_TYPE_PATHS
from models.link import FORMAT_MIME_TYPES
from models.rest import rest_config_id
from services.link_headers import rest_route_name
from services.rest_config import RestResourceConfigStorage
from utils.auth import get_current_account
from utils.etag import check_etag_match, generate_etag, not_modified_response, set_etag_headers
from utils.routing import EntityRoute, REQUIREMENTS_KEY, UrlGenerator, entity_loader, get_rest_configs
from utils.serialization import serialize


router = APIRouter(
    tags=["REST"],
    route_class=EntityRoute,
    dependencies=[Depends(get_current_account)],
)


# -----------------------------------------------------------------------------
# GET Endpoints (one route per entity type and format, selected by ?_format=)
# -----------------------------------------------------------------------------

def _rest_get_endpoint(entity_type: str, format: str):
    async def get_rest_entity(
        request: Request,
        entity: ContentEntity = Depends(entity_loader(entity_type)),
        account: Account = Depends(get_current_account),
        rest_configs: RestResourceConfigStorage = Depends(get_rest_configs),
    ):
        config = rest_configs.load(rest_config_id(entity_type))
        if config is None or format not in config.supported_formats("GET"):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Format '{format}' is not enabled for {entity_type}",
            )

        etag = generate_etag(entity, format)
        if check_etag_match(request, etag):
            return not_modified_response(etag)

        body, media_type = serialize(entity, format, UrlGenerator(request, settings.PUBLIC_BASE_URL), account)
        response = Response(content=body, media_type=media_type)
        set_etag_headers(response, etag)
        return response

    get_rest_entity.__name__ = f"get_{entity_type}_{format}"
    return get_rest_entity


for _entity_type, _path in ENTITY_TYPE_PATHS.items():
    for _format in FORMAT_MIME_TYPES:
        router.add_api_route(
            _path,
            _rest_get_endpoint(_entity_type, _format),
            methods=["GET"],
            name=rest_route_name(_entity_type, _format),
            response_class=Response,
            openapi_extra={
                REQUIREMENTS_KEY: {
                    "_format": _format,
                    "_permission": f"restful get entity:{_entity_type}",
                    "_entity_access": f"{_entity_type}.view",
                }
            },
        )
