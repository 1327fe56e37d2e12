"""Tool registration and dispatch for the MCP server.

Each tool is a ``ToolSpec``: its MCP definition plus an async handler
called as ``handler(config, args)``. ``ToolRegistry`` looks tools up by
name and turns exceptions escaping a handler into error results.
"""

import logging
import xmlrpc.client
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types
import requests

from ...config_schema import UnifiedConfig
from ...errors import ConfigurationError
from .errors import build_error_response, translate_xmlrpc_error

logger = logging.getLogger(__name__)

Handler = Callable[[UnifiedConfig, dict], Awaitable[types.CallToolResult]]


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """One MCP tool.

    Attributes:
        tool: Definition advertised by ``list_tools``.
        handler: Coroutine function run for ``call_tool``.
    """

    tool: types.Tool
    handler: Handler


class ToolRegistry:
    """Tools of the server, in registration order."""

    def __init__(self, specs: list[ToolSpec]):
        self._specs = {spec.tool.name: spec for spec in specs}

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        config: UnifiedConfig,
    ) -> types.CallToolResult:
        """Run the handler registered as *name*.

        Handler exceptions come back as ``isError`` results that tell the
        agent what to do next.

        Raises:
            ValueError: If no tool is registered as *name*.
        """
        if name not in self._specs:
            raise ValueError(f"Unknown tool: {name}")

        args = arguments or {}
        try:
            return await self._specs[name].handler(config, args)
        except Exception as e:
            return _error_result(name, args, e)


def _error_result(
    name: str, args: dict, error: Exception
) -> types.CallToolResult:
    match error:
        case xmlrpc.client.Fault():
            logger.warning(
                "XML-RPC fault in %s: %s", name, error.faultString
            )
            site = (
                args.get("site")
                or args.get("target_site")
                or args.get("source_site")
            )
            return translate_xmlrpc_error(error, site)
        case ConfigurationError():
            return build_error_response(
                "validation_error",
                str(error),
                "Use site_list to see configured sites, then retry.",
            )
        case requests.RequestException():
            logger.warning("HTTP error in %s: %s", name, error)
            return build_error_response(
                "server_error",
                str(error),
                "Check the site URL and network connectivity, or retry later.",
            )
        case ValueError():
            return build_error_response(
                "validation_error",
                str(error),
                "Fix the argument values and call the tool again.",
            )
        case _:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(error),
                "Check the server log, or retry later.",
            )
