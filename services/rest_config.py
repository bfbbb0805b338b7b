from __future__ import annotations

from typing import Dict, List, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.link import FORMAT_MIME_TYPES
from models.rest import RestResourceConfig, RestResourceConfigRecord

logger = structlog.get_logger(__name__)


class RestResourceConfigStorage:
    """In-memory REST resource configs keyed by ``entity.<type>``.

    Loaded from the ``rest_resource_config`` table at startup and kept current
    by the REST admin endpoints.
    """

    def __init__(self) -> None:
        self._configs: Dict[str, RestResourceConfig] = {}

    async def load_all(self, db: AsyncSession) -> None:
        result = await db.execute(select(RestResourceConfigRecord).order_by(RestResourceConfigRecord.id))
        self._configs = {}
        records = result.scalars().all()
        for record in records:
            self.save(record)
        logger.info("rest_resource_configs_loaded", count=len(records))

    def load(self, config_id: str) -> Optional[RestResourceConfig]:
        return self._configs.get(config_id)

    def load_multiple(self) -> List[RestResourceConfig]:
        return list(self._configs.values())

    def save(self, record: RestResourceConfigRecord) -> RestResourceConfig:
        config = RestResourceConfig.model_validate(record)
        unknown = [f for f in config.supported_formats("GET") if f not in FORMAT_MIME_TYPES]
        if unknown:
            # Kept as configured; such formats are never advertised
            logger.warning("rest_resource_config.unknown_formats", config_id=config.id, formats=unknown)
        self._configs[config.id] = config
        return config

    def delete(self, config_id: str) -> None:
        self._configs.pop(config_id, None)
