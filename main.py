from __future__ import annotations

import os
import socket
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Path, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from config.logging import configure_logging
from config.settings import settings
from routers import (
    accounts,
    entities,
    fields,
    rest,
    rest_resources,
)
from services.access import AccessManager
from services.accounts import ensure_admin_account
from services.database import AsyncSessionLocal, close_db, init_db
from services.fields import FieldDefinitionRegistry
from services.link_headers import build_link_header_decorators
from services.rest_config import RestResourceConfigStorage

port = int(os.environ.get("FASTAPIPORT", 8000))

configure_logging(level=settings.LOG_LEVEL, log_json=settings.LOG_JSON, environment=settings.ENVIRONMENT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Without tables the app still starts; requests fail until the database is fixed
    if await init_db():
        async with AsyncSessionLocal() as db:
            await ensure_admin_account(db)
            await app.state.field_registry.load(db)
            await app.state.rest_configs.load_all(db)
    yield
    await close_db()


app = FastAPI(
    title="Entity Link Headers",
    description="Serves node and media entities with Link headers pointing at related entities and alternate REST representations.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Link", "ETag"],
)

# -----------------------------------------------------------------------------
# Link header wiring
# -----------------------------------------------------------------------------

app.state.field_registry = FieldDefinitionRegistry()
app.state.rest_configs = RestResourceConfigStorage()
app.state.access_manager = AccessManager([entities.router, rest.router])
app.state.link_header_decorators = build_link_header_decorators(
    settings.LINK_HEADER_OBJECT_TYPES,
    field_definitions=app.state.field_registry,
    rest_configs=app.state.rest_configs,
    access=app.state.access_manager,
    cache_header=settings.DYNAMIC_CACHE_HEADER,
)

# -----------------------------------------------------------------------------
# Health endpoints
# -----------------------------------------------------------------------------

class Health(BaseModel):
    status: int
    status_message: str
    timestamp: str
    ip_address: str
    echo: Optional[str] = None
    path_echo: Optional[str] = None


def make_health(echo: Optional[str], path_echo: Optional[str]=None) -> Health:
    return Health(
        status=200,
        status_message="OK",
        timestamp=datetime.now(timezone.utc).isoformat(),
        ip_address=socket.gethostbyname(socket.gethostname()),
        echo=echo,
        path_echo=path_echo
    )

@app.get("/health", response_model=Health)
def get_health_no_path(echo: str | None = Query(None, description="Optional echo string")):
    return make_health(echo=echo, path_echo=None)

@app.get("/health/{path_echo}", response_model=Health)
def get_health_with_path(
    path_echo: str = Path(..., description="Required echo in the URL path"),
    echo: str | None = Query(None, description="Optional echo string"),
):
    return make_health(echo=echo, path_echo=path_echo)

# -----------------------------------------------------------------------------
# Routers
# -----------------------------------------------------------------------------

app.include_router(router=entities.router)
app.include_router(router=entities.crud_router)
app.include_router(router=rest.router)
app.include_router(router=fields.router)
app.include_router(router=rest_resources.router)
app.include_router(router=accounts.router)


# -----------------------------------------------------------------------------
# Root
# -----------------------------------------------------------------------------
@app.get("/")
def root():
    return {"message": "Welcome to the Entity Link Headers API. See /docs for OpenAPI UI."}

# -----------------------------------------------------------------------------
# Entrypoint for `python main.py`
# -----------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=port, reload=True)
