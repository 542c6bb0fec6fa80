"""rewind MCP tool: version history and navigation for tracked entities."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.server.context import Context
from pydantic import Field

from entity_rewind.errors import RewindError
from entity_rewind.models.entity import TrackedEntity  # noqa: TC001
from entity_rewind.rewind.manager import RewindManager
from entity_rewind.tools.formatters import format_history, format_move, format_version_line

logger = logging.getLogger(__name__)

_ACTIONS = {
    "history",
    "current",
    "goto",
    "rewind",
    "fast_forward",
    "snapshot",
}


def register_rewind(mcp: FastMCP) -> None:
    """Register the rewind tool with the MCP server."""

    @mcp.tool()
    async def rewind(
        action: Annotated[
            str,
            Field(description="Action: history, current, goto, rewind, fast_forward, snapshot"),
        ],
        entity_type: Annotated[str, Field(description="Registered entity type")],
        entity_id: Annotated[str, Field(description="Primary key of the entity")],
        version: Annotated[
            int | None,
            Field(description="Required for goto: target version (0 = before creation)", ge=0),
        ] = None,
        steps: Annotated[
            int,
            Field(description="For rewind and fast_forward: number of versions to move", ge=1),
        ] = 1,
        ctx: Context | None = None,
    ) -> str:
        """Inspect and navigate the version history of a tracked record.

        Actions:
        - history: List every recorded version with its changes
        - current: Show the version the record currently represents
        - goto: Move the record to a recorded version (requires version)
        - rewind: Move back by `steps` versions
        - fast_forward: Move forward by `steps` versions
        - snapshot: Record the current state as a full snapshot version
        """
        if ctx is None:
            raise RuntimeError("Context not injected")

        if action not in _ACTIONS:
            return f"Unknown action '{action}'. Use: {', '.join(sorted(_ACTIONS))}"

        manager: RewindManager = ctx.lifespan_context["manager"]

        try:
            if action == "history":
                return await _action_history(manager, entity_type, entity_id)
            elif action == "current":
                return await _action_current(manager, entity_type, entity_id)
            elif action == "goto":
                return await _action_goto(manager, entity_type, entity_id, version)
            elif action == "rewind":
                return await _action_rewind(manager, entity_type, entity_id, steps)
            elif action == "fast_forward":
                return await _action_fast_forward(manager, entity_type, entity_id, steps)
            elif action == "snapshot":
                return await _action_snapshot(manager, entity_type, entity_id)
        except RewindError as exc:
            logger.info("rewind %s failed: %s", action, exc.message)
            return f"Error: {exc.message}"

        return "Action not implemented."


async def _load(manager: RewindManager, entity_type: str, entity_id: str) -> TrackedEntity | None:
    """Fetch a tracked entity; raises NotTrackable for unknown types."""
    manager.settings.policy_for(entity_type)
    return await manager.store.get(entity_type, entity_id)


async def _action_history(manager: RewindManager, entity_type: str, entity_id: str) -> str:
    """Show the audit log of an entity."""
    entity = await _load(manager, entity_type, entity_id)
    records = await manager.version_store.get_versions(entity_type, entity_id)
    if entity is None:
        if not records:
            return f"Error: {entity_type}:{entity_id} not found."
        text = format_history(entity_type, entity_id, records[-1].version, records)
        return f"{text}\nStatus: deleted"
    current = await manager.current_version(entity)
    return format_history(entity_type, entity_id, current, records)


async def _action_current(manager: RewindManager, entity_type: str, entity_id: str) -> str:
    """Show the entity's current version."""
    entity = await _load(manager, entity_type, entity_id)
    if entity is None:
        return f"Error: {entity_type}:{entity_id} not found."
    current = await manager.current_version(entity)
    latest = await manager.version_store.max_version(entity_type, entity_id)
    return f"{entity_type}:{entity_id} is at v{current} of {latest}."


async def _action_goto(
    manager: RewindManager, entity_type: str, entity_id: str, version: int | None
) -> str:
    """Jump to a specific version."""
    if version is None:
        return "Error: version is required for goto action."
    entity = await _load(manager, entity_type, entity_id)
    if entity is None:
        return f"Error: {entity_type}:{entity_id} not found."
    previous = await manager.current_version(entity)
    approach = await manager.go_to(entity, version)
    return format_move(entity_type, entity_id, previous, version, approach)


async def _action_rewind(
    manager: RewindManager, entity_type: str, entity_id: str, steps: int
) -> str:
    """Move back by some versions."""
    entity = await _load(manager, entity_type, entity_id)
    if entity is None:
        return f"Error: {entity_type}:{entity_id} not found."
    previous = await manager.current_version(entity)
    approach = await manager.rewind(entity, steps)
    return format_move(entity_type, entity_id, previous, previous - steps, approach)


async def _action_fast_forward(
    manager: RewindManager, entity_type: str, entity_id: str, steps: int
) -> str:
    """Move forward by some versions."""
    entity = await _load(manager, entity_type, entity_id)
    if entity is None:
        return f"Error: {entity_type}:{entity_id} not found."
    previous = await manager.current_version(entity)
    approach = await manager.fast_forward(entity, steps)
    return format_move(entity_type, entity_id, previous, previous + steps, approach)


async def _action_snapshot(manager: RewindManager, entity_type: str, entity_id: str) -> str:
    """Record a snapshot version of the persisted state."""
    entity = await _load(manager, entity_type, entity_id)
    if entity is None:
        return f"Error: {entity_type}:{entity_id} not found."
    record = await manager.snapshot(entity)
    if record is None:
        return f"Nothing to snapshot: {entity_type} tracks no attributes."
    return f"Recorded snapshot:\n{format_version_line(record, record.version)}"
