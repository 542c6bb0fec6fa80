"""Tests for the rewind MCP tool."""

import pytest

from entity_rewind.errors import NotTrackable, VersionNotFound
from entity_rewind.tools.rewind_tool import (
    _ACTIONS,
    _action_current,
    _action_fast_forward,
    _action_goto,
    _action_history,
    _action_rewind,
    _action_snapshot,
)

# --- Dispatch ---


def test_action_set():
    assert _ACTIONS == {"history", "current", "goto", "rewind", "fast_forward", "snapshot"}
    assert "restore" not in _ACTIONS


# --- history ---


@pytest.mark.asyncio
async def test_history_lists_versions(manager, post):
    result = await _action_history(manager, "post", "p1")
    lines = result.splitlines()
    assert lines[0] == "Version history for post:p1 (current: v3)"
    assert len(lines) == 4
    assert lines[3].startswith("* v3")
    assert 'status: "active" -> "archived"' in lines[3]
    assert lines[1].startswith("  v1")


@pytest.mark.asyncio
async def test_history_marks_current_after_rewind(manager, post):
    await manager.rewind(post)
    result = await _action_history(manager, "post", "p1")
    assert "(current: v2)" in result
    assert "* v2" in result


@pytest.mark.asyncio
async def test_history_of_deleted_entity(manager, store, post):
    await store.delete(post)
    result = await _action_history(manager, "post", "p1")
    assert "(current: v4)" in result
    assert result.endswith("Status: deleted")


@pytest.mark.asyncio
async def test_history_missing_entity(manager):
    result = await _action_history(manager, "post", "nope")
    assert result == "Error: post:nope not found."


@pytest.mark.asyncio
async def test_history_without_records(manager, store):
    await store.create("post", {"title": "quiet"}, entity_id="p2", capture=False)
    result = await _action_history(manager, "post", "p2")
    assert "No version records found." in result


@pytest.mark.asyncio
async def test_history_unknown_type(manager):
    with pytest.raises(NotTrackable):
        await _action_history(manager, "tag", "t1")


# --- current ---


@pytest.mark.asyncio
async def test_current(manager, post):
    result = await _action_current(manager, "post", "p1")
    assert result == "post:p1 is at v3 of 3."


@pytest.mark.asyncio
async def test_current_after_rewind(manager, post):
    await manager.rewind(post, 2)
    result = await _action_current(manager, "post", "p1")
    assert result == "post:p1 is at v1 of 3."


@pytest.mark.asyncio
async def test_current_after_create(manager, store):
    await store.create("note", {"a": 1, "b": 2}, entity_id="n1")
    result = await _action_current(manager, "note", "n1")
    assert result == "note:n1 is at v1 of 1."


# --- goto ---


@pytest.mark.asyncio
async def test_goto(manager, store, post):
    result = await _action_goto(manager, "post", "p1", 1)
    assert result == "post:p1 moved v3 -> v1 via direct diff walk (cost 2)."
    fetched = await store.get("post", "p1")
    assert fetched.get_attribute("status") == "draft"


@pytest.mark.asyncio
async def test_goto_same_version(manager, post):
    result = await _action_goto(manager, "post", "p1", 3)
    assert result == "post:p1 already at v3."


@pytest.mark.asyncio
async def test_goto_requires_version(manager, post):
    result = await _action_goto(manager, "post", "p1", None)
    assert result == "Error: version is required for goto action."


@pytest.mark.asyncio
async def test_goto_unknown_version(manager, post):
    with pytest.raises(VersionNotFound):
        await _action_goto(manager, "post", "p1", 42)


@pytest.mark.asyncio
async def test_goto_missing_entity(manager):
    result = await _action_goto(manager, "post", "nope", 1)
    assert result == "Error: post:nope not found."


# --- rewind / fast_forward ---


@pytest.mark.asyncio
async def test_rewind_then_fast_forward(manager, store, post):
    result = await _action_rewind(manager, "post", "p1", 2)
    assert result == "post:p1 moved v3 -> v1 via direct diff walk (cost 2)."

    result = await _action_fast_forward(manager, "post", "p1", 1)
    assert result == "post:p1 moved v1 -> v2 via direct diff walk (cost 1)."
    fetched = await store.get("post", "p1")
    assert fetched.get_attribute("status") == "active"


@pytest.mark.asyncio
async def test_fast_forward_past_head(manager, post):
    with pytest.raises(VersionNotFound):
        await _action_fast_forward(manager, "post", "p1", 1)


# --- snapshot ---


@pytest.mark.asyncio
async def test_snapshot(manager, post):
    result = await _action_snapshot(manager, "post", "p1")
    assert result.startswith("Recorded snapshot:\n* v4")
    assert "[snapshot]" in result

    result = await _action_goto(manager, "post", "p1", 1)
    result = await _action_goto(manager, "post", "p1", 4)
    assert "via snapshot v4 (cost 1)" in result


@pytest.mark.asyncio
async def test_snapshot_untracked_type(manager, store):
    await store.create("log", {"message": "hi"}, entity_id="l1")
    result = await _action_snapshot(manager, "log", "l1")
    assert result == "Nothing to snapshot: log tracks no attributes."
