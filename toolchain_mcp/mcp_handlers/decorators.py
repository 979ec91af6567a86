"""
Tool handler guard - timeout protection and error normalization.

Every handler placed in the live tool table goes through guard_handler(), so
a slow or crashing tool produces an error result instead of taking down the
long-lived server process.
"""

import asyncio
import time
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Sequence

from mcp.types import CallToolResult, TextContent

from toolchain_mcp.logging_utils import get_logger
from .utils import error_response, text_response

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

ToolHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass
class ToolDefinition:
    """An entry of the live tool table."""
    name: str
    handler: Callable[[Dict[str, Any]], Awaitable[CallToolResult]]
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    timeout: float = DEFAULT_TIMEOUT


def normalize_result(result: Any) -> CallToolResult:
    """Coerce the assorted shapes a handler may return into a CallToolResult."""
    if isinstance(result, CallToolResult):
        return result
    if isinstance(result, TextContent):
        return CallToolResult(content=[result], isError=False)
    if isinstance(result, str):
        return text_response(result)
    if isinstance(result, Sequence) and all(isinstance(item, TextContent) for item in result):
        return CallToolResult(content=list(result), isError=False)
    if result is None:
        return text_response("")
    return text_response(str(result))


def guard_handler(
    tool_name: str,
    handler: ToolHandler,
    timeout: float = DEFAULT_TIMEOUT,
) -> Callable[[Dict[str, Any]], Awaitable[CallToolResult]]:
    """
    Wrap a tool handler with timeout protection and error handling.

    Provides:
    - asyncio.wait_for timeout (warns when >80% of the budget is used);
      a timeout <= 0 means no limit
    - conversion of uncaught exceptions into error results
    - normalization of the return value to CallToolResult
    """
    limit = timeout if timeout and timeout > 0 else None

    @wraps(handler)
    async def wrapper(arguments: Dict[str, Any]) -> CallToolResult:
        start_time = time.time()
        try:
            result = await asyncio.wait_for(handler(arguments or {}), timeout=limit)
        except asyncio.TimeoutError:
            logger.warning(f"Tool '{tool_name}' timed out after {timeout}s")
            return error_response(
                f"Tool '{tool_name}' timed out after {timeout} seconds.",
                recovery={"action": "Try again with simpler parameters or check the toolchain with doctor",
                          "related_tools": ["doctor"]},
            )
        except Exception as e:
            logger.error(f"Tool '{tool_name}' error: {e}", exc_info=True)
            return error_response(f"Error executing tool '{tool_name}': {e}")

        elapsed = time.time() - start_time
        if limit is not None and elapsed > limit * 0.8:
            logger.warning(
                f"Tool '{tool_name}' took {elapsed:.2f}s "
                f"({elapsed / timeout * 100:.1f}% of {timeout}s timeout)"
            )
        return normalize_result(result)

    wrapper._tool_name = tool_name
    wrapper._tool_timeout = timeout
    return wrapper
