from fastapi import APIRouter, HTTPException, Depends, Query, status
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, List

import structlog

from services.database import get_db
from models.entity import ContentEntity, EntityReferenceItem, ENTITY_TYPES
from models.field import (
    BASE_FIELD_NAMES,
    FieldConfig,
    FieldConfigCreate,
    FieldConfigRead,
    FieldDefinition,
    FieldType,
)
from services.fields import FieldDefinitionRegistry
from utils.auth import require_permission
from utils.routing import get_field_registry

logger = structlog.get_logger(__name__)


router = APIRouter(
    prefix="/admin/fields",
    tags=["Field configuration"],
    dependencies=[Depends(require_permission("administer site configuration"))],
)


# -----------------------------------------------------------------------------
# POST Endpoint
# -----------------------------------------------------------------------------

@router.post("/", response_model=FieldConfigRead, status_code=201, name="create_field_config")
async def create_field_config(
    field_req: FieldConfigCreate,
    db: AsyncSession = Depends(get_db),
    registry: FieldDefinitionRegistry = Depends(get_field_registry),
):
    if field_req.entity_type not in ENTITY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown entity type: {field_req.entity_type}",
        )
    if field_req.field_name in BASE_FIELD_NAMES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"'{field_req.field_name}' is a base field",
        )
    if field_req.target_type is not None:
        if field_req.field_type != FieldType.ENTITY_REFERENCE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only entity_reference fields take a target_type",
            )
        if field_req.target_type not in ENTITY_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown target type: {field_req.target_type}",
            )

    existing = await db.scalar(
        select(FieldConfig.id).where(
            FieldConfig.entity_type == field_req.entity_type,
            FieldConfig.bundle == field_req.bundle,
            FieldConfig.field_name == field_req.field_name,
        )
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{field_req.field_name} already exists on {field_req.entity_type}.{field_req.bundle}",
        )

    field_config = FieldConfig(
        entity_type=field_req.entity_type,
        bundle=field_req.bundle,
        field_name=field_req.field_name,
        label=field_req.label,
        field_type=field_req.field_type.value,
        target_type=field_req.target_type,
    )
    db.add(field_config)
    await db.commit()
    await db.refresh(field_config)

    registry.add(field_config)
    logger.info(
        "field_config_created",
        entity_type=field_config.entity_type,
        bundle=field_config.bundle,
        field_name=field_config.field_name,
    )
    return FieldConfigRead.model_validate(field_config)


# -----------------------------------------------------------------------------
# GET Endpoints
# -----------------------------------------------------------------------------

@router.get("/", response_model=List[FieldConfigRead], status_code=200, name="list_field_configs")
async def list_field_configs(
    entity_type: Optional[str] = Query(None, description="Filter by entity type"),
    bundle: Optional[str] = Query(None, description="Filter by bundle"),
    db: AsyncSession = Depends(get_db),
):
    query = select(FieldConfig)
    if entity_type is not None:
        query = query.where(FieldConfig.entity_type == entity_type)
    if bundle is not None:
        query = query.where(FieldConfig.bundle == bundle)

    result = await db.execute(query.order_by(FieldConfig.id))
    return [FieldConfigRead.model_validate(c) for c in result.scalars().all()]


@router.get(
    "/definitions/{entity_type}/{bundle}",
    response_model=List[FieldDefinition],
    status_code=200,
    name="get_field_definitions",
)
async def get_field_definitions(
    entity_type: str,
    bundle: str,
    registry: FieldDefinitionRegistry = Depends(get_field_registry),
):
    """Base and configured fields of a bundle, in link generation order."""
    return list(registry.get_field_definitions(entity_type, bundle).values())


@router.get("/{field_id}", response_model=FieldConfigRead, status_code=200, name="get_field_config")
async def get_field_config(
    field_id: int,
    db: AsyncSession = Depends(get_db),
):
    field_config = await db.get(FieldConfig, field_id)
    if field_config is None:
        raise HTTPException(status_code=404, detail="Field config not found")
    return FieldConfigRead.model_validate(field_config)


# -----------------------------------------------------------------------------
# DELETE Endpoint
# -----------------------------------------------------------------------------

@router.delete("/{field_id}", status_code=204, name="delete_field_config")
async def delete_field_config(
    field_id: int,
    db: AsyncSession = Depends(get_db),
    registry: FieldDefinitionRegistry = Depends(get_field_registry),
):
    field_config = await db.get(FieldConfig, field_id)
    if field_config is None:
        raise HTTPException(status_code=404, detail="Field config not found")

    # Stored items of the field go with it
    bundle_entities = select(ContentEntity.id).where(
        ContentEntity.entity_type == field_config.entity_type,
        ContentEntity.bundle == field_config.bundle,
    )
    await db.execute(
        delete(EntityReferenceItem).where(
            EntityReferenceItem.field_name == field_config.field_name,
            EntityReferenceItem.source_id.in_(bundle_entities),
        )
    )
    await db.delete(field_config)
    await db.commit()

    registry.remove(field_config.entity_type, field_config.bundle, field_config.field_name)
