from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import String, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from services.database import Base

# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------
class FieldType(str, Enum):
    ENTITY_REFERENCE = "entity_reference"
    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    CREATED = "created"
    CHANGED = "changed"


# -----------------------------------------------------------------------------
# Field definition (what the link generators consume)
# -----------------------------------------------------------------------------
class FieldDefinition(BaseModel):
    name: str
    label: str
    field_type: FieldType
    is_base_field: bool = False
    target_type: Optional[str] = None

    model_config = ConfigDict(frozen=True)


# Fields every entity type carries, in this order
BASE_FIELD_DEFINITIONS: tuple[FieldDefinition, ...] = (
    FieldDefinition(name="id", label="ID", field_type=FieldType.INTEGER, is_base_field=True),
    FieldDefinition(name="label", label="Label", field_type=FieldType.STRING, is_base_field=True),
    FieldDefinition(name="status", label="Published", field_type=FieldType.BOOLEAN, is_base_field=True),
    FieldDefinition(
        name="uid",
        label="Authored by",
        field_type=FieldType.ENTITY_REFERENCE,
        is_base_field=True,
        target_type="user",
    ),
    FieldDefinition(name="created", label="Created", field_type=FieldType.CREATED, is_base_field=True),
    FieldDefinition(name="changed", label="Changed", field_type=FieldType.CHANGED, is_base_field=True),
)

BASE_FIELD_NAMES = frozenset(d.name for d in BASE_FIELD_DEFINITIONS)


# -----------------------------------------------------------------------------
# SQLAlchemy Model
# -----------------------------------------------------------------------------
class FieldConfig(Base):
    """A configured (non base) field attached to one bundle"""
    __tablename__ = "field_config"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    bundle: Mapped[str] = mapped_column(String(64), nullable=False)
    field_name: Mapped[str] = mapped_column(String(64), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)
    field_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("entity_type", "bundle", "field_name", name="uq_field_config_bundle_field"),
    )

    def to_definition(self) -> FieldDefinition:
        return FieldDefinition(
            name=self.field_name,
            label=self.label,
            field_type=FieldType(self.field_type),
            is_base_field=False,
            target_type=self.target_type,
        )


# -----------------------------------------------------------------------------
# Pydantic Schemas
# -----------------------------------------------------------------------------
class FieldConfigCreate(BaseModel):
    """Attach a new field to a bundle"""
    entity_type: str = Field(..., examples=["node"])
    bundle: str = Field(..., min_length=1, max_length=64, examples=["article"])
    field_name: str = Field(
        ...,
        min_length=1,
        max_length=64,
        pattern=r'^[a-z][a-z0-9_]*$',
        description="Machine name, e.g. field_author",
        examples=["field_author"]
    )
    label: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Human readable label; used as the Link header title",
        examples=["Author"]
    )
    field_type: FieldType = Field(FieldType.ENTITY_REFERENCE)
    target_type: Optional[str] = Field(
        None,
        description="Entity type this reference field points to; any type if omitted",
        examples=["user"]
    )


class FieldConfigRead(BaseModel):
    id: int
    entity_type: str
    bundle: str
    field_name: str
    label: str
    field_type: FieldType
    target_type: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


FieldDefinitions = Dict[str, FieldDefinition]
