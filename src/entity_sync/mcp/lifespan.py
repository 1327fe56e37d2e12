"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config import load_unified_config
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_path: Path | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for credential lookups and
      YAML interpolation)
    - Load and validate the YAML config
    - Fail fast if no site is configured

    Site connections are opened per tool call, so nothing is validated
    against WordPress here; use the ``ping`` tool for that.

    Args:
        config_path: Read only this config file instead of discovering one.

    Yields:
        Dict with 'config' key containing the ``UnifiedConfig``

    Raises:
        RuntimeError: If the configuration is invalid or lists no sites.
    """
    logger.info("MCP server starting...")
    _stderr_print("Entity Sync MCP Server starting...")

    load_dotenv()

    try:
        unified = load_unified_config(config_path)
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    if not unified.sites:
        logger.error("No sites configured")
        _stderr_print("ERROR: No sites configured.")
        _stderr_print(
            "  Add a 'sites:' section to .entity_sync/config.yml "
            "or set ENTITY_SYNC_CONFIG."
        )
        raise RuntimeError(
            "No sites configured. Add a 'sites:' section to the config file."
        )

    logger.info("Configured sites: %s", ", ".join(unified.sites))
    _stderr_print(f"  Configured sites: {', '.join(unified.sites)}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"config": unified}

    logger.info("MCP server shutting down")
    _stderr_print("Entity Sync MCP Server shutting down.")
