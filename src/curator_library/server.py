"""Curator Library MCP Server - FastMCP Implementation

Exposes a curator-operated book catalog and lending workflow as MCP tools.
Clients connect via stdio transport; logs go to stderr so stdout stays
reserved for the protocol.
"""

import logging
import signal
import sys
from typing import Any

from fastmcp import FastMCP

from .config import get_config
from .database.session import get_db_manager
from .observability import ObservabilityConfig, initialize_observability
from .tools import all_tools

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Curator Library - curators keep a catalog of physical books and lend them "
        "out. Search a catalog by ISBN, add books (details are filled in from the "
        "ISBN when possible), submit borrow requests, and let the curator approve, "
        "reject and record returns. A book can only have one active request at a time."
    ),
)

for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))


def prepare_storage() -> None:
    """Create tables if needed and make sure the store answers."""
    manager = get_db_manager()
    manager.init_database()
    if not manager.verify_connection():
        raise RuntimeError(f"Cannot connect to database at {config.database_path}")
    logger.info("Database ready at %s", config.database_path)


def run_stdio_server() -> None:
    """Run the MCP server using stdio transport."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if config.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.debug("Debug mode enabled - verbose protocol logging active")
    else:
        logging.getLogger().setLevel(config.log_level)
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        get_db_manager().close()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        logger.info("MCP Server ready and waiting for connections...")
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in MCP server")
        sys.exit(1)


def main() -> None:
    """Entry point for the ``curator-library`` command."""
    try:
        logger.info("=" * 60)
        logger.info("Curator Library MCP Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Debug Mode: %s", config.debug)
        logger.info("=" * 60)

        initialize_observability(
            ObservabilityConfig(enabled=config.observability_enabled)
        )
        prepare_storage()

        if config.transport == "stdio":
            run_stdio_server()
        else:
            logger.error("Unsupported transport: %s", config.transport)
            sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start MCP server")
        sys.exit(1)


if __name__ == "__main__":
    main()
