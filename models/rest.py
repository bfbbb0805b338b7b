from __future__ import annotations
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from services.database import Base


def rest_config_id(entity_type: str) -> str:
    """Identifier of the REST resource config exposing an entity type."""
    return f"entity.{entity_type}"


# -----------------------------------------------------------------------------
# SQLAlchemy Model
# -----------------------------------------------------------------------------
class RestResourceConfigRecord(Base):
    __tablename__ = "rest_resource_config"

    # entity.<type>
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    plugin_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # {"GET": {"supported_formats": [...], "supported_auth": [...]}}
    configuration: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )


# -----------------------------------------------------------------------------
# Pydantic Schemas
# -----------------------------------------------------------------------------
class RestMethodConfig(BaseModel):
    supported_formats: List[str] = Field(
        default_factory=list,
        description="Serialization formats, in the order they are advertised",
        examples=[["json", "jsonld"]]
    )
    supported_auth: List[str] = Field(
        default_factory=list,
        examples=[["cookie"]]
    )


class RestResourceConfigUpsert(BaseModel):
    """Replace the REST configuration of one entity type"""
    configuration: Dict[str, RestMethodConfig] = Field(
        ...,
        description="Per HTTP method configuration",
        examples=[{"GET": {"supported_formats": ["json", "xml"], "supported_auth": ["cookie"]}}]
    )


class RestResourceConfig(BaseModel):
    """REST exposure of one entity type"""
    id: str
    plugin_id: str
    configuration: Dict[str, RestMethodConfig] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    def supported_formats(self, method: str = "GET") -> List[str]:
        method_config = self.configuration.get(method.upper())
        if method_config is None:
            return []
        return list(method_config.supported_formats)
