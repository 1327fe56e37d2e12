"""MCP tool handlers for entity sync.

Defines two tools:

- ``entity_sync`` -- copy every post of one type between two sites.
- ``site_list`` -- list the configured sites.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...config import resolve_site_pair
from ...config_schema import UnifiedConfig
from ...core.async_utils import run_sync
from ...sync.engine import sync_sites
from ...sync.reporter import format_sync_report, report_to_json
from .errors import build_error_response
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="entity_sync",
        description=(
            "Copy every published post of one type (default 'musician') "
            "from a source site to a target site, with custom fields, "
            "taxonomy terms and featured image. Posts whose title already "
            "exists on the target are skipped."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "source_site": {
                    "type": "string",
                    "description": "Configured site to copy posts from",
                },
                "target_site": {
                    "type": "string",
                    "description": "Configured site to copy posts to",
                },
                "post_type": {
                    "type": "string",
                    "description": (
                        "Post type to sync. Defaults to sync.post_type "
                        "from config."
                    ),
                },
            },
            "required": ["source_site", "target_site"],
        },
    ),
    types.Tool(
        name="site_list",
        description="List configured sites with their XML-RPC endpoints.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_entity_sync(
    config: UnifiedConfig, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``entity_sync`` tool."""
    source_name = args.get("source_site")
    target_name = args.get("target_site")
    if not source_name or not target_name:
        return build_error_response(
            "validation_error",
            "source_site and target_site are required",
            "Provide both site names. Use site_list to see configured sites.",
        )

    source_site, target_site = resolve_site_pair(
        str(source_name), str(target_name), config
    )
    post_type = args.get("post_type") or config.sync.post_type

    report = await run_sync(
        sync_sites,
        source_site,
        target_site,
        post_type,
        post_status=config.sync.post_status,
    )

    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_sync_report(report))
        ],
        structuredContent=report_to_json(report),
    )


async def _handle_site_list(
    config: UnifiedConfig, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``site_list`` tool."""
    if not config.sites:
        return build_error_response(
            "not_found",
            "No sites configured.",
            "Add a 'sites:' section to .entity_sync/config.yml.",
        )

    sites = [
        {
            "name": name,
            "url": section.url,
            "blog_id": section.blog_id,
        }
        for name, section in sorted(config.sites.items())
    ]
    lines = [f"Configured sites ({len(sites)}):"]
    lines += [
        f"  {site['name']}: {site['url']} (blog {site['blog_id']})"
        for site in sites
    ]

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={"sites": sites},
    )


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(tool=SYNC_TOOLS[0], handler=_handle_entity_sync),
    ToolSpec(tool=SYNC_TOOLS[1], handler=_handle_site_list),
]
