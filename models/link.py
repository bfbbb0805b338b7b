from __future__ import annotations

from enum import Enum
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------
class ObjectType(str, Enum):
    """Entity types whose responses get Link headers"""
    NODE = "node"
    MEDIA = "media"


class LinkRelation(str, Enum):
    RELATED = "related"        # entity referenced by a field on the subject
    ALTERNATE = "alternate"    # another serialization of the subject


# Serialization formats that can be advertised, in MIME terms
FORMAT_MIME_TYPES: dict[str, str] = {
    "json": "application/json",
    "jsonld": "application/ld+json",
    "hal_json": "application/hal+json",
    "xml": "application/xml",
}


# -----------------------------------------------------------------------------
# Link header value
# -----------------------------------------------------------------------------
class LinkHeaderValue(BaseModel):
    """One value of an HTTP Link header."""
    href: str                    # absolute URL, query included
    rel: LinkRelation
    title: Optional[str] = None  # field label, related links only
    type: Optional[str] = None   # MIME type, alternate links only

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        value = f'<{self.href}>; rel="{self.rel.value}"'
        if self.title is not None:
            value += "; " + _title_param(self.title)
        if self.type is not None:
            value += f'; type="{self.type}"'
        return value


def _title_param(title: str) -> str:
    # Header values go out as latin-1; anything else needs the RFC 8187 form
    try:
        title.encode("latin-1")
    except UnicodeEncodeError:
        return f"title*=UTF-8''{quote(title, safe='')}"
    escaped = title.replace("\\", "\\\\").replace('"', '\\"')
    return f'title="{escaped}"'
