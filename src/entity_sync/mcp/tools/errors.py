"""Error results for MCP tools.

An error result names a category and tells the agent what to try next,
so it can recover on its own.
"""

import xmlrpc.client

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Return an ``isError`` result.

    The text reads ``Error (<error_type>): <message>`` followed by a
    blank line and ``Action: <corrective_action>``. Categories in use:
    not_found, permission_denied, validation_error, server_error and
    unknown_tool.

    Example:
        >>> build_error_response("not_found", "No sites configured.", "Add a 'sites:' section.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=True,
    )


def translate_xmlrpc_error(
    error: xmlrpc.client.Fault,
    site_name: str | None = None,
) -> types.CallToolResult:
    """Map a WordPress XML-RPC fault to an error result.

    WordPress answers 403 for bad credentials, 401 for a missing
    capability, and 404 for unknown posts and post types.
    *site_name*, when known, is named in the corrective action.
    """
    where = f" on site '{site_name}'" if site_name else ""
    message = error.faultString
    lowered = message.lower()

    if error.faultCode == 404 or "invalid post" in lowered:
        return build_error_response(
            "not_found",
            message,
            f"Check the post type exists{where}.",
        )

    if (
        error.faultCode in (401, 403)
        or "incorrect username" in lowered
        or "not allowed" in lowered
    ):
        return build_error_response(
            "permission_denied",
            message,
            f"Check the username and application password{where}.",
        )

    return build_error_response(
        "server_error",
        message,
        "Check that XML-RPC is enabled on the site, or retry later.",
    )
