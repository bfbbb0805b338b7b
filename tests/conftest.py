"""Shared pytest fixtures for the link header service tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Iterator

# Settings are read at import time; point them at a throwaway database first.
_DB_DIR = Path(tempfile.mkdtemp(prefix="entity-link-headers-"))
_DB_PATH = _DB_DIR / "test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from fakes import (  # noqa: E402
    FakeAccessChecker,
    FakeAccount,
    FakeFieldDefinitions,
    FakeRestConfigs,
    FakeUrls,
)

ADMIN = {"X-Account-Id": "1"}


@pytest.fixture
def client() -> Iterator[TestClient]:
    """App client on an empty database with the bootstrap admin (id 1)."""
    if _DB_PATH.exists():
        _DB_PATH.unlink()

    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return dict(ADMIN)


@pytest.fixture
def account() -> FakeAccount:
    return FakeAccount()


@pytest.fixture
def field_definitions() -> FakeFieldDefinitions:
    return FakeFieldDefinitions()


@pytest.fixture
def rest_configs() -> FakeRestConfigs:
    return FakeRestConfigs()


@pytest.fixture
def access() -> FakeAccessChecker:
    return FakeAccessChecker()


@pytest.fixture
def urls() -> FakeUrls:
    return FakeUrls()
