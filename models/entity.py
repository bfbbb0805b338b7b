from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Integer, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from services.database import Base

if TYPE_CHECKING:
    from models.account import Account


# -----------------------------------------------------------------------------
# Entity types
# -----------------------------------------------------------------------------
# entity type -> canonical path; the path parameter is named after the type
ENTITY_TYPE_PATHS: Dict[str, str] = {
    "node": "/node/{node:int}",
    "media": "/media/{media:int}",
    "user": "/user/{user:int}",
    "taxonomy_term": "/taxonomy/term/{taxonomy_term:int}",
    "file": "/file/{file:int}",
}

ENTITY_TYPES = tuple(ENTITY_TYPE_PATHS)

VIEW_PERMISSIONS: Dict[str, str] = {
    "node": "access content",
    "media": "view media",
    "user": "access user profiles",
    "taxonomy_term": "access content",
    "file": "access content",
}

VIEW_OWN_UNPUBLISHED = "view own unpublished content"


# -----------------------------------------------------------------------------
# SQLAlchemy Models
# -----------------------------------------------------------------------------
class ContentEntity(Base):
    __tablename__ = "entities"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    bundle: Mapped[str] = mapped_column(String(64), nullable=False)
    label: Mapped[str] = mapped_column(String(255), nullable=False)

    # published
    status: Mapped[bool] = mapped_column(Boolean, default=True)
    owner_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # scalar (non reference) field values keyed by field name
    values: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    references: Mapped[List["EntityReferenceItem"]] = relationship(
        back_populates="source",
        foreign_keys="EntityReferenceItem.source_id",
        order_by="EntityReferenceItem.delta",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_entities_type_bundle", "entity_type", "bundle"),
    )

    def get_field_value(self, field_name: str) -> List["ContentEntity"]:
        """Referenced entities of a reference field, in delta order.

        Items whose target no longer exists are left out. Requires the
        references to have been loaded with their targets.
        """
        return [
            item.target
            for item in self.references
            if item.field_name == field_name and item.target is not None
        ]

    def can_view(self, account: "Account") -> bool:
        if account.is_admin:
            return True
        if not account.has_permission(VIEW_PERMISSIONS.get(self.entity_type, "access content")):
            return False
        if self.status:
            return True
        return (
            not account.is_anonymous
            and self.owner_id == account.id
            and account.has_permission(VIEW_OWN_UNPUBLISHED)
        )

    @property
    def fields(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.get_fields()

    def get_fields(self, account: Optional["Account"] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Reference items grouped by field name.

        Given an account, items whose target it cannot view are left out.
        """
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for item in self.references:
            if account is not None and (item.target is None or not item.target.can_view(account)):
                continue
            grouped.setdefault(item.field_name, []).append(
                {"target_type": item.target_type, "target_id": item.target_id}
            )
        return grouped


class EntityReferenceItem(Base):
    __tablename__ = "entity_references"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    field_name: Mapped[str] = mapped_column(String(64), nullable=False)
    delta: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    target_type: Mapped[str] = mapped_column(String(32), nullable=False)
    target_id: Mapped[int] = mapped_column(
        ForeignKey("entities.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    source: Mapped[ContentEntity] = relationship(
        back_populates="references",
        foreign_keys=[source_id],
    )
    target: Mapped[Optional[ContentEntity]] = relationship(
        foreign_keys=[target_id],
    )


# -----------------------------------------------------------------------------
# Pydantic Schemas
# -----------------------------------------------------------------------------
class EntityReference(BaseModel):
    """A single reference field item"""
    target_type: str = Field(
        ...,
        description="Entity type of the referenced entity",
        examples=["user"]
    )
    target_id: int = Field(
        ...,
        ge=1,
        description="Identifier of the referenced entity",
        examples=[5]
    )


class EntityBase(BaseModel):
    """Base entity fields shared across schemas"""
    label: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Title or name of the entity",
        examples=["Moby Dick"]
    )
    status: bool = Field(
        True,
        description="Whether the entity is published"
    )
    values: Dict[str, Any] = Field(
        default_factory=dict,
        description="Values of configured non reference fields, keyed by field name"
    )


class EntityCreate(EntityBase):
    """Create an entity of the type given in the path"""
    bundle: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Bundle (content type, media type, vocabulary...)",
        examples=["article"]
    )
    owner_id: Optional[int] = Field(
        None,
        description="Account that owns the entity"
    )
    fields: Dict[str, List[EntityReference]] = Field(
        default_factory=dict,
        description="Reference field items keyed by field name"
    )


class EntityUpdate(BaseModel):
    """Partial update; reference fields named here are replaced wholesale"""
    label: Optional[str] = Field(
        None,
        min_length=1,
        max_length=255,
        description="Updated label"
    )
    status: Optional[bool] = Field(
        None,
        description="Updated published flag"
    )
    values: Optional[Dict[str, Any]] = Field(
        None,
        description="Scalar field values to merge into the existing ones"
    )
    fields: Optional[Dict[str, List[EntityReference]]] = Field(
        None,
        description="Reference fields to replace"
    )

    @field_validator('label')
    @classmethod
    def reject_empty_strings(cls, v: Optional[str]) -> Optional[str]:
        """Ensure if provided, label is not an empty string"""
        if v is not None and v.strip() == "":
            raise ValueError("Field cannot be empty string")
        return v


class EntityRead(EntityBase):
    """Entity data returned to clients"""
    id: int
    entity_type: str
    bundle: str
    owner_id: Optional[int] = None
    fields: Dict[str, List[EntityReference]] = Field(
        default_factory=dict,
        description="Reference field items keyed by field name"
    )
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
