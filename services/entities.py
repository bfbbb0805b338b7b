from __future__ import annotations

from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.account import Account
from models.entity import ContentEntity, EntityRead, EntityReference, EntityReferenceItem
from models.field import FieldType
from services.fields import FieldDefinitionRegistry


class FieldValidationError(ValueError):
    """Submitted field data does not match the bundle's field definitions."""


def _with_references():
    return selectinload(ContentEntity.references).selectinload(EntityReferenceItem.target)


async def load_entity(db: AsyncSession, entity_type: str, entity_id: int) -> Optional[ContentEntity]:
    """Load an entity with its reference items and their targets."""
    result = await db.execute(
        select(ContentEntity)
        .where(ContentEntity.id == entity_id, ContentEntity.entity_type == entity_type)
        .options(_with_references())
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def read_entity(entity: ContentEntity, account: Account) -> EntityRead:
    """Read schema of the entity, without references the account cannot view."""
    data = EntityRead.model_validate(entity).model_dump(exclude={"fields"})
    return EntityRead(**data, fields=entity.get_fields(account))


def validate_values(
    registry: FieldDefinitionRegistry,
    entity_type: str,
    bundle: str,
    values: Dict[str, object],
) -> None:
    for field_name in values:
        definition = registry.get_field_definition(entity_type, bundle, field_name)
        if definition is None or definition.is_base_field:
            raise FieldValidationError(f"Unknown field '{field_name}' on {entity_type}.{bundle}")
        if definition.field_type == FieldType.ENTITY_REFERENCE:
            raise FieldValidationError(f"'{field_name}' is a reference field; send it under 'fields'")


async def build_reference_items(
    db: AsyncSession,
    registry: FieldDefinitionRegistry,
    entity_type: str,
    bundle: str,
    fields: Dict[str, List[EntityReference]],
) -> List[EntityReferenceItem]:
    """Validate submitted reference fields and turn them into items."""
    items: List[EntityReferenceItem] = []
    for field_name, references in fields.items():
        definition = registry.get_field_definition(entity_type, bundle, field_name)
        if definition is None or definition.is_base_field:
            raise FieldValidationError(f"Unknown field '{field_name}' on {entity_type}.{bundle}")
        if definition.field_type != FieldType.ENTITY_REFERENCE:
            raise FieldValidationError(f"'{field_name}' is not a reference field")

        for delta, reference in enumerate(references):
            if definition.target_type and reference.target_type != definition.target_type:
                raise FieldValidationError(
                    f"'{field_name}' only references {definition.target_type} entities"
                )
            target = await db.scalar(
                select(ContentEntity.id).where(
                    ContentEntity.id == reference.target_id,
                    ContentEntity.entity_type == reference.target_type,
                )
            )
            if target is None:
                raise FieldValidationError(
                    f"Referenced {reference.target_type} {reference.target_id} does not exist"
                )
            items.append(
                EntityReferenceItem(
                    field_name=field_name,
                    delta=delta,
                    target_type=reference.target_type,
                    target_id=reference.target_id,
                )
            )
    return items
