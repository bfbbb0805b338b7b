from __future__ import annotations

from typing import Dict, Tuple

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.field import BASE_FIELD_DEFINITIONS, FieldConfig, FieldDefinition

logger = structlog.get_logger(__name__)


class FieldDefinitionRegistry:
    """In-memory field definitions per (entity type, bundle).

    Loaded from the ``field_config`` table at startup and kept current by the
    field admin endpoints. Base fields come first, then configured fields in
    the order they were created.
    """

    def __init__(self) -> None:
        self._configured: Dict[Tuple[str, str], Dict[str, FieldDefinition]] = {}

    async def load(self, db: AsyncSession) -> None:
        result = await db.execute(select(FieldConfig).order_by(FieldConfig.id))
        self._configured = {}
        configs = result.scalars().all()
        for config in configs:
            self.add(config)
        logger.info("field_definitions_loaded", count=len(configs))

    def add(self, config: FieldConfig) -> None:
        bundle_fields = self._configured.setdefault((config.entity_type, config.bundle), {})
        bundle_fields[config.field_name] = config.to_definition()

    def remove(self, entity_type: str, bundle: str, field_name: str) -> None:
        bundle_fields = self._configured.get((entity_type, bundle))
        if bundle_fields is not None:
            bundle_fields.pop(field_name, None)

    def get_field_definitions(self, entity_type: str, bundle: str) -> Dict[str, FieldDefinition]:
        definitions = {d.name: d for d in BASE_FIELD_DEFINITIONS}
        definitions.update(self._configured.get((entity_type, bundle), {}))
        return definitions

    def get_field_definition(self, entity_type: str, bundle: str, field_name: str) -> FieldDefinition | None:
        return self.get_field_definitions(entity_type, bundle).get(field_name)
