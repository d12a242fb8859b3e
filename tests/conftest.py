"""Pytest configuration and fixtures."""

import sys
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest
from fastapi.testclient import TestClient

from deskspace.app import create_app
from deskspace.config import Settings
from deskspace.desktop.database import Database
from deskspace.desktop.repositories import (
    AccessGate,
    DesktopRepository,
    DockRepository,
    OrderingService,
    TreeStore,
)
from deskspace.desktop.schemas import Desktop, FileType, Item, ItemCreate, ItemVariant


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def settings() -> Settings:
    """Create test settings backed by a private in-memory database."""
    return Settings(
        host="127.0.0.1",
        port=8000,
        debug=True,
        database_path=":memory:",
        _env_file=None,
    )


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    """Create test client with configured app and run its lifespan."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def owner_headers(settings: Settings) -> dict[str, str]:
    """Identity header for the desktop owner."""
    return {settings.identity_header: "alice"}


@pytest.fixture
def other_headers(settings: Settings) -> dict[str, str]:
    """Identity header for a second account."""
    return {settings.identity_header: "bob"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db() -> Iterator[Database]:
    """Initialized in-memory database."""
    database = Database(":memory:")
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def desktops(db: Database, clock: FakeClock) -> DesktopRepository:
    return DesktopRepository(db, clock=clock)


@pytest.fixture
def tree(db: Database, clock: FakeClock) -> TreeStore:
    return TreeStore(db, clock=clock)


@pytest.fixture
def ordering(db: Database, clock: FakeClock) -> OrderingService:
    return OrderingService(db, clock=clock)


@pytest.fixture
def access(db: Database, clock: FakeClock) -> AccessGate:
    return AccessGate(db, clock=clock)


@pytest.fixture
def dock(db: Database, clock: FakeClock) -> DockRepository:
    return DockRepository(db, clock=clock)


@pytest.fixture
def desktop(desktops: DesktopRepository) -> Desktop:
    """Desktop owned by alice."""
    return desktops.get_or_create("alice")


@pytest.fixture
def make_item(tree: TreeStore, desktop: Desktop) -> Callable[..., Item]:
    """Factory creating content files on alice's desktop.

    Keyword arguments are passed through to ItemCreate; the file type
    defaults to a note.
    """

    def factory(title: str = "Untitled", **fields: Any) -> Item:
        variant = fields.setdefault("variant", ItemVariant.CONTENT_FILE)
        if variant is ItemVariant.CONTENT_FILE:
            fields.setdefault("file_type", FileType.NOTE)
        return tree.create_item(desktop.id, ItemCreate(title=title, **fields))

    return factory
