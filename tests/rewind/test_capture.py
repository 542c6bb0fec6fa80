"""Tests for diff capture."""

import asyncio

import pytest

from entity_rewind.config import TrackingPolicy
from entity_rewind.models.entity import ChangeKind, EntityChange
from entity_rewind.rewind.manager import RewindManager
from tests.conftest import make_settings


@pytest.mark.asyncio
async def test_creation_records_all_tracked_attributes(manager, store):
    entity = await store.create("post", {"title": "Hello", "status": "draft", "body": "x"})
    versions = await manager.versions(entity)
    assert len(versions) == 1
    first = versions[0]
    assert first.version == 1
    assert first.new_values == {"title": "Hello", "status": "draft"}
    assert first.old_values == {"title": None, "status": None}
    assert first.is_snapshot is False


@pytest.mark.asyncio
async def test_update_records_only_changed_attribute(manager, store):
    entity = await store.create("post", {"title": "Hello", "status": "draft"})
    entity.set_attribute("status", "active")
    await store.save(entity)

    versions = await manager.versions(entity)
    assert len(versions) == 2
    assert versions[1].old_values == {"status": "draft"}
    assert versions[1].new_values == {"status": "active"}


@pytest.mark.asyncio
async def test_noop_update_writes_nothing(manager, store):
    entity = await store.create("post", {"title": "Hello", "status": "draft"})
    await store.save(entity)
    entity.set_attribute("status", "draft")
    await store.save(entity)
    assert len(await manager.versions(entity)) == 1


@pytest.mark.asyncio
async def test_untracked_change_writes_nothing(manager, store):
    entity = await store.create("post", {"title": "Hello", "body": "one"})
    entity.set_attribute("body", "two")
    await store.save(entity)

    assert len(await manager.versions(entity)) == 1
    fetched = await store.get("post", entity.entity_id)
    assert fetched.get_attribute("body") == "two"


@pytest.mark.asyncio
async def test_versions_are_contiguous(manager, store):
    entity = await store.create("note", {"a": 0, "b": 0})
    for i in range(1, 6):
        entity.set_attribute("a", i)
        await store.save(entity)

    versions = await manager.versions(entity)
    assert [v.version for v in versions] == [1, 2, 3, 4, 5, 6]
    assert entity.current_version == 6
    fetched = await store.get("note", entity.entity_id)
    assert fetched.current_version == 6


@pytest.mark.asyncio
async def test_concurrent_writers_get_distinct_versions(manager, store):
    await store.create("note", {"a": 0, "b": 0}, entity_id="n1")
    copies = [await store.get("note", "n1") for _ in range(5)]
    for i, copy in enumerate(copies, start=1):
        copy.set_attribute("a", i)

    await asyncio.gather(*(store.save(copy) for copy in copies))

    versions = await manager.version_store.get_versions("note", "n1")
    assert [v.version for v in versions] == [1, 2, 3, 4, 5, 6]


@pytest.mark.asyncio
async def test_deletion_records_old_values(manager, store):
    entity = await store.create("post", {"title": "Hello", "status": "draft"})
    await store.delete(entity)

    versions = await manager.versions(entity)
    assert len(versions) == 2
    assert versions[1].old_values == {"title": "Hello", "status": "draft"}
    assert versions[1].new_values == {}
    assert versions[1].is_snapshot is False


@pytest.mark.asyncio
async def test_suppressed_entity_writes_nothing(manager, store):
    entity = await store.create("post", {"title": "Hello", "status": "draft"})
    async with manager.capture.suppressed(entity):
        entity.set_attribute("status", "active")
        await store.save(entity)
        assert manager.capture.is_suppressed(entity)
    assert not manager.capture.is_suppressed(entity)

    assert len(await manager.versions(entity)) == 1
    entity.set_attribute("status", "archived")
    await store.save(entity)
    assert len(await manager.versions(entity)) == 2


@pytest.mark.asyncio
async def test_capture_false_skips_hook(manager, store):
    entity = await store.create("post", {"title": "Hello"}, capture=False)
    assert await manager.versions(entity) == []
    assert entity.current_version is None


@pytest.mark.asyncio
async def test_track_all(manager, store):
    entity = await store.create("note", {"a": 1, "b": 2})
    versions = await manager.versions(entity)
    assert versions[0].new_values == {"a": 1, "b": 2}


@pytest.mark.asyncio
async def test_default_policy_tracks_nothing(manager, store):
    entity = await store.create("log", {"message": "hi"})
    assert await manager.versions(entity) == []


@pytest.mark.asyncio
async def test_default_policy_tracks_all_when_enabled(db):
    manager = RewindManager(db, make_settings(tracks_all_by_default=True))
    entity = await manager.store.create("log", {"message": "hi", "level": "info"})
    versions = await manager.versions(entity)
    assert versions[0].new_values == {"message": "hi", "level": "info"}


@pytest.mark.asyncio
async def test_explicit_list_wins_over_default(db):
    manager = RewindManager(db, make_settings(tracks_all_by_default=True))
    entity = await manager.store.create("post", {"title": "T", "status": "s", "body": "b"})
    versions = await manager.versions(entity)
    assert set(versions[0].new_values) == {"title", "status"}


@pytest.mark.asyncio
async def test_author_recorded_when_tracking_user(db):
    manager = RewindManager(db, make_settings(track_user=True), user_resolver=lambda: 7)
    entity = await manager.store.create("post", {"title": "T"})
    versions = await manager.versions(entity)
    assert versions[0].author_id == "7"


@pytest.mark.asyncio
async def test_author_ignored_without_tracking_user(db):
    manager = RewindManager(db, make_settings(), user_resolver=lambda: "alice")
    entity = await manager.store.create("post", {"title": "T"})
    versions = await manager.versions(entity)
    assert versions[0].author_id is None


@pytest.mark.asyncio
async def test_snapshot_interval(db):
    manager = RewindManager(db, make_settings(snapshot_interval=3))
    entity = await manager.store.create("note", {"a": 0, "b": 9})
    for i in range(1, 6):
        entity.set_attribute("a", i)
        await manager.store.save(entity)

    versions = await manager.versions(entity)
    assert [v.version for v in versions if v.is_snapshot] == [3, 6]
    third = versions[2]
    assert third.new_values == {"a": 2, "b": 9}
    assert third.old_values == {"a": 1}


@pytest.mark.asyncio
async def test_write_behind_head_is_snapshot(manager, store, post, caplog):
    await manager.rewind(post, 2)
    post.set_attribute("title", "Rewritten")
    with caplog.at_level("WARNING", logger="entity_rewind.rewind.capture"):
        await store.save(post)

    versions = await manager.versions(post)
    assert versions[-1].version == 4
    assert versions[-1].is_snapshot is True
    assert versions[-1].new_values == {"title": "Rewritten", "status": "draft"}
    # reversing v4 must restore the head (v3), not the rewound state
    assert versions[-1].old_values == {"title": "Hello", "status": "archived"}
    assert "behind head" in caplog.text


@pytest.mark.asyncio
async def test_record_version_from_external_host(manager, store):
    """A host that writes rows itself can report the change directly."""
    entity = await store.create("post", {"title": "T", "status": "a"}, capture=False)
    change = EntityChange(
        kind=ChangeKind.CREATED,
        entity_type="post",
        entity_id=entity.entity_id,
        current={"title": "T", "status": "a"},
    )
    record = await manager.record_version(entity, change)
    assert record is not None
    assert record.version == 1
    assert entity.current_version == 1


@pytest.mark.asyncio
async def test_tracked_attributes_resolution(db):
    settings = make_settings(
        entities=[
            TrackingPolicy(entity_type="post", table="posts", attributes=["status"], track_all=True),
        ]
    )
    manager = RewindManager(db, settings)
    assert await manager.capture.tracked_attributes("post") == ["title", "status", "body"]
