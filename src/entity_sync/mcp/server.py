"""MCP stdio server for entity sync.

Agents use it to list the configured WordPress sites, check that a site
answers with valid credentials, and run a sync batch between two sites.
The JSON-RPC stream runs over stdin/stdout, so nothing else may print to
stdout once the server is up.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config import load_site_config
from ..config_schema import UnifiedConfig
from ..core.async_utils import run_sync
from ..core.client import WordPressClient
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from .lifespan import server_lifespan
from .tools import ALL_SPECS, ToolRegistry, build_error_response
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

SERVER_NAME = "entity-sync"

server = Server(SERVER_NAME)

# Set by main() for the lifetime of the stdio session
_config: UnifiedConfig | None = None
_registry: ToolRegistry | None = None


def _text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


# ---------------------------------------------------------------------------
# ping
# ---------------------------------------------------------------------------


async def _handle_ping(
    config: UnifiedConfig, args: dict
) -> types.CallToolResult:
    """Log in to one configured site and report its WordPress version."""
    site_name = args.get("site")
    if not site_name:
        return build_error_response(
            "validation_error",
            "site is required",
            "Pass the 'site' argument. site_list shows the configured names.",
        )

    site = load_site_config(str(site_name), config)
    client = WordPressClient(site)
    try:
        version = await run_sync(client.validate_connection)
    except Exception as e:
        logger.warning("Ping of site %s failed: %s", site.name, e)
        return _text_result(
            f"Connection to site '{site.name}' failed: {e}. "
            "Check its URL and credentials (WP_USERNAME, WP_PASSWORD).",
            is_error=True,
        )
    finally:
        client.close()

    return _text_result(
        f"Site '{site.name}' connected successfully. "
        f"WordPress version: {version}"
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description=(
            "Check that a configured site is reachable over XML-RPC and "
            "accepts the configured credentials. Returns the WordPress "
            "version."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "site": {
                    "type": "string",
                    "description": "Name of a site from the config",
                },
            },
            "required": ["site"],
        },
    ),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


def get_config() -> UnifiedConfig:
    """Return the config loaded at startup.

    Raises:
        RuntimeError: Before the lifespan has loaded it.
    """
    if _config is None:
        raise RuntimeError(
            "Config not initialized. Server lifespan not started."
        )
    return _config


def set_config(config: UnifiedConfig | None) -> None:
    global _config
    _config = config


def get_registry() -> ToolRegistry:
    """Return the tool registry built by main().

    Raises:
        RuntimeError: Before main() has built it.
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Dispatch a tool call; an unknown name becomes an error result."""
    config = get_config()
    try:
        return await get_registry().call_tool(name, arguments, config)
    except ValueError as e:
        return build_error_response(
            "unknown_tool",
            str(e),
            "Call list_tools for the names this server provides.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def _init_options() -> InitializationOptions:
    return InitializationOptions(
        server_name=SERVER_NAME,
        server_version=__version__,
        capabilities=server.get_capabilities(
            notification_options=NotificationOptions(),
            experimental_capabilities={},
        ),
    )


async def main(
    config_path: Path | None = None, log_file: str | None = None
):
    """Serve MCP over stdio until the client disconnects.

    Logging is configured for file output before the stdio streams are
    opened.
    """
    setup_logging(mode="mcp", log_file=log_file)

    registry = ToolRegistry([PING_SPEC] + ALL_SPECS)
    logger.info("Registered %d tools", registry.tool_count())
    set_registry(registry)

    # Globals are set here, not in the lifespan, so that running this
    # file as __main__ updates this module's copy.
    async with server_lifespan(config_path=config_path) as ctx:
        set_config(ctx["config"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                await server.run(read_stream, write_stream, _init_options())
        finally:
            set_config(None)
            set_registry(None)


def run() -> None:
    """Console entry point for ``entity-sync-mcp``."""
    parser = argparse.ArgumentParser(
        prog="entity-sync-mcp",
        description="MCP server that syncs WordPress posts between configured sites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Discover .entity_sync/config.yml in the working directory
  entity-sync-mcp

  # Read one config file only
  entity-sync-mcp --config /etc/entity-sync/sites.yml

  # Write logs somewhere other than {DEFAULT_MCP_LOG_FILE}
  entity-sync-mcp --log-file /var/log/entity-sync-mcp.log

stdout carries the MCP JSON-RPC stream. Startup messages go to stderr
and log lines to the log file (--log-file, LOG_FILE, or the default).
        """,
    )
    parser.add_argument(
        "--config",
        help="Read only this config file instead of the discovered ones",
    )
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"entity-sync-mcp version {__version__}",
    )
    args = parser.parse_args()

    try:
        asyncio.run(
            main(
                config_path=Path(args.config) if args.config else None,
                log_file=args.log_file,
            )
        )
    except RuntimeError:
        # server_lifespan already explained the failure on stderr
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
