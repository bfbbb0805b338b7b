from __future__ import annotations
from datetime import datetime, timezone
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import String, Boolean, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from services.database import Base

# -----------------------------------------------------------------------------
# SQLAlchemy Model
# -----------------------------------------------------------------------------
class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # unique identifier
    name: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    permissions: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Bypasses every permission and entity access check
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_anonymous(self) -> bool:
        return self.id == 0

    def has_permission(self, permission: str) -> bool:
        if self.is_admin:
            return True
        return permission in (self.permissions or [])


def anonymous_account(permissions: List[str]) -> Account:
    """Transient account used when a request names no account."""
    return Account(
        id=0,
        name="Anonymous",
        permissions=list(permissions),
        is_admin=False,
        is_active=True,
    )


# -----------------------------------------------------------------------------
# Pydantic Schemas
# -----------------------------------------------------------------------------
class AccountBase(BaseModel):
    """Base account fields shared across schemas"""
    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Unique account name",
        examples=["editor"]
    )
    permissions: List[str] = Field(
        default_factory=list,
        description="Permissions granted to this account",
        examples=[["access content", "restful get entity:node"]]
    )
    is_admin: bool = Field(
        False,
        description="Administrators pass every access check"
    )

    @field_validator('name')
    @classmethod
    def reject_empty_strings(cls, v: str) -> str:
        """Ensure the name is not only whitespace"""
        if v.strip() == "":
            raise ValueError("Field cannot be empty string")
        return v


class AccountCreate(AccountBase):
    """Create an account"""
    pass


class AccountRead(AccountBase):
    """Account data returned to clients"""
    id: int = Field(
        ...,
        description="Internal identifier; send it as X-Account-Id to act as this account"
    )
    is_active: bool = Field(
        ...,
        description="Inactive accounts are rejected"
    )
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
