"""FastMCP server with lifespan management and tool registration."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from entity_rewind.config import get_db_path, get_log_level, load_settings
from entity_rewind.db.connection import create_connection
from entity_rewind.rewind.manager import RewindManager
from entity_rewind.tools.rewind_tool import register_rewind


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    """Manage database connection and rewind manager lifecycle."""
    # Configure logging to stderr (stdout is MCP stdio transport)
    logging.basicConfig(
        level=getattr(logging, get_log_level()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    settings = load_settings()
    if not settings.entities:
        logger.warning("No tracked entity types configured (REWIND_ENTITIES)")

    db_path = get_db_path()
    logger.info("Opening database at %s", db_path)
    db = await create_connection(db_path, user_id_column=settings.user_id_column)

    manager = RewindManager(db, settings)
    try:
        await manager.store.verify_all()
        if settings.snapshot_interval:
            logger.info("Snapshot every %d versions", settings.snapshot_interval)
        yield {"db": db, "manager": manager}
    finally:
        await db.close()
        logger.info("Database connection closed")


_INSTRUCTIONS = """\
This server keeps a linear version history for records in a SQLite database. \
Every create, update and delete of a tracked record is stored as a versioned \
diff, and a record can be moved to any earlier or later version.

Use the `rewind` tool:
- history: see every version of a record and what changed
- current: see which version the record currently represents
- goto: jump to a specific version (0 = before the record was created)
- rewind / fast_forward: step back or forward by a number of versions
- snapshot: store the full current state as a jump point for faster navigation

Navigation does not create new versions. Saving a record that was rewound \
continues the history from the latest version.
"""


def create_server() -> FastMCP:
    """Create and configure the MCP server with all tools."""
    mcp = FastMCP(
        "entity-rewind",
        instructions=_INSTRUCTIONS,
        lifespan=lifespan,
    )

    register_rewind(mcp)

    return mcp
