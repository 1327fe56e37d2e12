"""WordPress transport shared by the CLI and the MCP server."""

from .async_utils import run_sync
from .client import WordPressClient

__all__ = ["WordPressClient", "run_sync"]
