"""Shared test fixtures."""

import pytest
import pytest_asyncio

from entity_rewind.config import RewindSettings, TrackingPolicy
from entity_rewind.db.connection import create_connection
from entity_rewind.rewind.manager import RewindManager

HOST_SCHEMA = """
CREATE TABLE posts (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    status TEXT,
    body TEXT,
    current_version INTEGER
);

CREATE TABLE notes (
    id TEXT PRIMARY KEY,
    a INTEGER,
    b INTEGER,
    current_version INTEGER
);

CREATE TABLE logs (
    id TEXT PRIMARY KEY,
    message TEXT,
    level TEXT
);

CREATE TABLE tags (
    id TEXT PRIMARY KEY,
    name TEXT
);
"""


def make_settings(**overrides) -> RewindSettings:
    """Settings tracking posts (title/status), notes (all) and logs (default policy)."""
    values = {
        "entities": [
            TrackingPolicy(entity_type="post", table="posts", attributes=["title", "status"]),
            TrackingPolicy(entity_type="note", table="notes", track_all=True),
            TrackingPolicy(entity_type="log", table="logs"),
        ],
    }
    values.update(overrides)
    return RewindSettings(**values)


@pytest_asyncio.fixture
async def db():
    """In-memory database with the version schema and host tables."""
    conn = await create_connection(":memory:")
    await conn.executescript(HOST_SCHEMA)
    yield conn
    await conn.close()


@pytest.fixture
def settings():
    """Default tracking settings."""
    return make_settings()


@pytest_asyncio.fixture
async def manager(db, settings):
    """Rewind manager with verified entity types."""
    rewind = RewindManager(db, settings)
    await rewind.store.verify_all()
    return rewind


@pytest_asyncio.fixture
async def store(manager):
    """Entity store wired to diff capture."""
    return manager.store


@pytest_asyncio.fixture
async def post(store):
    """A post with three versions: draft -> active -> archived."""
    entity = await store.create(
        "post", {"title": "Hello", "status": "draft", "body": "text"}, entity_id="p1"
    )
    entity.set_attribute("status", "active")
    await store.save(entity)
    entity.set_attribute("status", "archived")
    await store.save(entity)
    return entity
