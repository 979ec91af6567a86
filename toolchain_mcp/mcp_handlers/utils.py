"""
Common utilities for MCP tool handlers.

Every tool result is a CallToolResult with an explicit isError flag, so a
caller sees a single failure shape: text message + isError=True.
"""

import json
from typing import Any, Dict, Optional

from mcp.types import CallToolResult, TextContent

from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)

# Bound for echoing untrusted text (e.g. a model's answer) back to callers
MAX_ECHO_LENGTH = 500


def text_response(text: str, is_error: bool = False) -> CallToolResult:
    """Create a single-text-item tool result."""
    return CallToolResult(
        content=[TextContent(type="text", text=text)],
        isError=is_error,
    )


def error_response(message: str, recovery: Optional[Dict[str, Any]] = None) -> CallToolResult:
    """
    Create an error result with optional recovery guidance.

    Example:
        >>> error_response(
        ...     "Workflow 'foo' is not enabled",
        ...     recovery={"action": "Call discover_tools first", "related_tools": ["discover_tools"]},
        ... )
    """
    text = message
    if recovery:
        lines = []
        action = recovery.get("action")
        if action:
            lines.append(f"Next step: {action}")
        related = recovery.get("related_tools")
        if related:
            lines.append(f"Related tools: {', '.join(related)}")
        if lines:
            text = f"{message}\n\n" + "\n".join(lines)
    return text_response(text, is_error=True)


def json_response(data: Dict[str, Any]) -> CallToolResult:
    """Create a success result whose text is compact JSON."""
    try:
        text = json.dumps(data, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        logger.error(f"JSON serialization error: {e}", exc_info=True)
        text = json.dumps(data, ensure_ascii=False, default=str)
    return text_response(text)


def truncate(text: str, limit: int = MAX_ECHO_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


def result_text(result: CallToolResult) -> str:
    """Concatenate the text items of a tool result."""
    return "\n".join(item.text for item in result.content if isinstance(item, TextContent))
