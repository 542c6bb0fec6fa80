"""Entry point for the entity-rewind MCP server."""

from entity_rewind.server import create_server


def main() -> None:
    """Run the entity-rewind MCP server."""
    server = create_server()
    server.run(transport="stdio")


if __name__ == "__main__":
    main()
