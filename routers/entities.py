from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, HTTPException, Depends, Request, Response, status
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from services.database import get_db
from models.account import Account
from models.entity import (
    ContentEntity,
    EntityCreate,
    EntityReferenceItem,
    EntityRead,
    EntityUpdate,
    ENTITY_TYPE_PATHS,
    ENTITY_TYPES,
)
from services.entities import (
    FieldValidationError,
    build_reference_items,
    load_entity,
    read_entity,
    validate_values,
)
from services.fields import FieldDefinitionRegistry
from utils.auth import get_current_account, require_permission
from utils.etag import check_etag_match, generate_etag, not_modified_response, set_etag_headers
from utils.routing import EntityRoute, REQUIREMENTS_KEY, entity_loader, get_field_registry

logger = structlog.get_logger(__name__)

ADMINISTER_CONTENT = "administer content"


router = APIRouter(
    tags=["Entities"],
    route_class=EntityRoute,
    dependencies=[Depends(get_current_account)],
)

# Content administration; plain routes, matched regardless of _format
crud_router = APIRouter(
    tags=["Entities"],
    dependencies=[Depends(get_current_account)],
)


# -----------------------------------------------------------------------------
# Canonical GET/HEAD Endpoints
# -----------------------------------------------------------------------------

def _canonical_endpoint(entity_type: str):
    async def get_entity(
        request: Request,
        response: Response,
        entity: ContentEntity = Depends(entity_loader(entity_type)),
        account: Account = Depends(get_current_account),
    ):
        etag = generate_etag(entity)
        if check_etag_match(request, etag):
            return not_modified_response(etag)

        set_etag_headers(response, etag)
        return read_entity(entity, account)

    get_entity.__name__ = f"get_{entity_type}"
    return get_entity


for _entity_type, _path in ENTITY_TYPE_PATHS.items():
    router.add_api_route(
        _path,
        _canonical_endpoint(_entity_type),
        methods=["GET", "HEAD"],
        response_model=EntityRead,
        name=f"entity.{_entity_type}.canonical",
        openapi_extra={REQUIREMENTS_KEY: {"_entity_access": f"{_entity_type}.view"}},
    )


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown entity type: {entity_type}",
        )


async def _load_or_404(db: AsyncSession, entity_type: str, entity_id: int) -> ContentEntity:
    entity = await load_entity(db, entity_type, entity_id)
    if entity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity_type} not found")
    return entity


# -----------------------------------------------------------------------------
# POST Endpoint
# -----------------------------------------------------------------------------

@crud_router.post("/entity/{entity_type}", response_model=EntityRead, status_code=201, name="create_entity")
async def create_entity(
    entity_type: str,
    entity_req: EntityCreate,
    db: AsyncSession = Depends(get_db),
    registry: FieldDefinitionRegistry = Depends(get_field_registry),
    account: Account = Depends(require_permission(ADMINISTER_CONTENT)),
):
    _check_entity_type(entity_type)

    try:
        validate_values(registry, entity_type, entity_req.bundle, entity_req.values)
        items = await build_reference_items(db, registry, entity_type, entity_req.bundle, entity_req.fields)
    except FieldValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    entity = ContentEntity(
        entity_type=entity_type,
        bundle=entity_req.bundle,
        label=entity_req.label,
        status=entity_req.status,
        owner_id=entity_req.owner_id if entity_req.owner_id is not None else account.id,
        values=entity_req.values,
        references=items,
    )
    db.add(entity)
    await db.commit()

    logger.info("entity_created", entity_type=entity_type, entity_id=entity.id, bundle=entity.bundle)
    return read_entity(await _load_or_404(db, entity_type, entity.id), account)


# -----------------------------------------------------------------------------
# PATCH Endpoint
# -----------------------------------------------------------------------------

@crud_router.patch("/entity/{entity_type}/{entity_id}", response_model=EntityRead, status_code=200, name="update_entity")
async def update_entity(
    entity_type: str,
    entity_id: int,
    entity_update: EntityUpdate,
    db: AsyncSession = Depends(get_db),
    registry: FieldDefinitionRegistry = Depends(get_field_registry),
    account: Account = Depends(require_permission(ADMINISTER_CONTENT)),
):
    _check_entity_type(entity_type)
    entity = await _load_or_404(db, entity_type, entity_id)

    try:
        if entity_update.values is not None:
            validate_values(registry, entity_type, entity.bundle, entity_update.values)
        new_items = []
        if entity_update.fields is not None:
            new_items = await build_reference_items(
                db, registry, entity_type, entity.bundle, entity_update.fields
            )
    except FieldValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if entity_update.label is not None:
        entity.label = entity_update.label
    if entity_update.status is not None:
        entity.status = entity_update.status
    if entity_update.values is not None:
        entity.values = {**(entity.values or {}), **entity_update.values}
    if entity_update.fields is not None:
        replaced = set(entity_update.fields)
        entity.references = [
            item for item in entity.references if item.field_name not in replaced
        ] + new_items

    entity.updated_at = datetime.now(timezone.utc)

    await db.commit()
    return read_entity(await _load_or_404(db, entity_type, entity_id), account)


# -----------------------------------------------------------------------------
# DELETE Endpoint
# -----------------------------------------------------------------------------

@crud_router.delete("/entity/{entity_type}/{entity_id}", status_code=204, name="delete_entity")
async def delete_entity(
    entity_type: str,
    entity_id: int,
    db: AsyncSession = Depends(get_db),
    account: Account = Depends(require_permission(ADMINISTER_CONTENT)),
):
    _check_entity_type(entity_type)
    entity = await _load_or_404(db, entity_type, entity_id)

    # Drop references pointing at the entity; its own items cascade
    await db.execute(delete(EntityReferenceItem).where(EntityReferenceItem.target_id == entity_id))
    await db.delete(entity)
    await db.commit()
    logger.info("entity_deleted", entity_type=entity_type, entity_id=entity_id)
