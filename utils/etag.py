import hashlib
from typing import Optional

from fastapi import Request, Response

from models.entity import ContentEntity


def generate_etag(entity: ContentEntity, format: str = "html") -> str:
    """
    Generate an ETag for one representation of an entity.

    The entity's type, id and last change identify its state; the format
    keeps the JSON, XML... variants of the same entity apart.
    """
    changed = entity.updated_at.isoformat() if entity.updated_at else ""
    content = f"{entity.entity_type}:{entity.id}:{changed}:{format}"
    return f'"{hashlib.md5(content.encode("utf-8")).hexdigest()}"'


def check_etag_match(request: Request, current_etag: str) -> bool:
    """
    True if the If-None-Match header names the current ETag (or is a wildcard).
    """
    if_none_match: Optional[str] = request.headers.get("if-none-match")
    if not if_none_match:
        return False

    client_etags = [etag.strip() for etag in if_none_match.split(",")]
    return "*" in client_etags or current_etag in client_etags


def set_etag_headers(response: Response, etag: str) -> None:
    response.headers["ETag"] = etag
    response.headers["Cache-Control"] = "private, max-age=0, must-revalidate"


def not_modified_response(etag: str) -> Response:
    response = Response(status_code=304)
    set_etag_headers(response, etag)
    return response
