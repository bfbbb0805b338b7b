from fastapi import APIRouter, HTTPException, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

import structlog

from services.database import get_db
from models.entity import ENTITY_TYPES
from models.rest import (
    RestResourceConfig,
    RestResourceConfigRecord,
    RestResourceConfigUpsert,
    rest_config_id,
)
from services.rest_config import RestResourceConfigStorage
from utils.auth import require_permission
from utils.routing import get_rest_configs

logger = structlog.get_logger(__name__)


router = APIRouter(
    prefix="/admin/rest",
    tags=["REST configuration"],
    dependencies=[Depends(require_permission("administer rest resources"))],
)


def _check_entity_type(entity_type: str) -> None:
    if entity_type not in ENTITY_TYPES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown entity type: {entity_type}",
        )


# -----------------------------------------------------------------------------
# PUT Endpoint
# -----------------------------------------------------------------------------

@router.put("/{entity_type}", response_model=RestResourceConfig, status_code=200, name="put_rest_resource_config")
async def put_rest_resource_config(
    entity_type: str,
    config_req: RestResourceConfigUpsert,
    db: AsyncSession = Depends(get_db),
    storage: RestResourceConfigStorage = Depends(get_rest_configs),
):
    """Create or replace the REST exposure of an entity type."""
    _check_entity_type(entity_type)

    config_id = rest_config_id(entity_type)
    configuration = {
        method.upper(): method_config.model_dump()
        for method, method_config in config_req.configuration.items()
    }

    record = await db.get(RestResourceConfigRecord, config_id)
    if record is None:
        record = RestResourceConfigRecord(
            id=config_id,
            plugin_id=f"entity:{entity_type}",
            configuration=configuration,
        )
        db.add(record)
    else:
        record.configuration = configuration

    await db.commit()
    await db.refresh(record)

    logger.info("rest_resource_config_saved", config_id=config_id)
    return storage.save(record)


# -----------------------------------------------------------------------------
# GET Endpoints
# -----------------------------------------------------------------------------

@router.get("/", response_model=List[RestResourceConfig], status_code=200, name="list_rest_resource_configs")
async def list_rest_resource_configs(
    storage: RestResourceConfigStorage = Depends(get_rest_configs),
):
    return storage.load_multiple()


@router.get("/{entity_type}", response_model=RestResourceConfig, status_code=200, name="get_rest_resource_config")
async def get_rest_resource_config(
    entity_type: str,
    storage: RestResourceConfigStorage = Depends(get_rest_configs),
):
    config = storage.load(rest_config_id(entity_type))
    if config is None:
        raise HTTPException(status_code=404, detail="REST resource config not found")
    return config


# -----------------------------------------------------------------------------
# DELETE Endpoint
# -----------------------------------------------------------------------------

@router.delete("/{entity_type}", status_code=204, name="delete_rest_resource_config")
async def delete_rest_resource_config(
    entity_type: str,
    db: AsyncSession = Depends(get_db),
    storage: RestResourceConfigStorage = Depends(get_rest_configs),
):
    config_id = rest_config_id(entity_type)
    record = await db.get(RestResourceConfigRecord, config_id)
    if record is None:
        raise HTTPException(status_code=404, detail="REST resource config not found")

    await db.delete(record)
    await db.commit()
    storage.delete(config_id)
