"""
Live MCP tool table.

Wraps the low-level mcp Server: list_tools/call_tool are answered from a
mutable table that the activation protocol writes into, and tool-list
changes are announced to the connected client.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional

from mcp.server.lowlevel import NotificationOptions, Server
from mcp.server.models import InitializationOptions
from mcp.types import CallToolResult, Tool

from toolchain_mcp import __version__
from toolchain_mcp.logging_utils import get_logger
from toolchain_mcp.mcp_handlers.decorators import DEFAULT_TIMEOUT, ToolDefinition, guard_handler
from toolchain_mcp.mcp_handlers.utils import error_response

logger = get_logger(__name__)


class ToolRegistrationError(Exception):
    """A tool could not be placed in the live tool table."""


class ToolServer:
    """
    Protocol-server handle used by the registry.

    Example:
        >>> tool_server = ToolServer("toolchain-mcp")
        >>> await tool_server.register_tool("build_sim", "Build for simulator", schema, handler)
        >>> await tool_server.notify_tool_list_changed()
    """

    def __init__(
        self,
        name: str = "toolchain-mcp",
        version: str = __version__,
        default_timeout: float = DEFAULT_TIMEOUT,
    ):
        self.server = Server(name, version=version)
        self.default_timeout = default_timeout
        self._tools: Dict[str, ToolDefinition] = {}

        self.server.list_tools()(self.list_tools)
        self.server.call_tool()(self.call_tool)

    # ------------------------------------------------------------------
    # Tool table
    # ------------------------------------------------------------------

    async def register_tool(
        self,
        name: str,
        description: str,
        input_schema: Mapping[str, Any],
        handler: Callable,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Add a tool to the live table.

        timeout=None uses the server default; timeout <= 0 disables the limit.

        Raises:
            ToolRegistrationError: name already taken, or handler not callable
        """
        if name in self._tools:
            raise ToolRegistrationError(f"Tool '{name}' is already registered")
        if not callable(handler):
            raise ToolRegistrationError(f"Handler for tool '{name}' is not callable")

        effective_timeout = self.default_timeout if timeout is None else timeout
        self._tools[name] = ToolDefinition(
            name=name,
            handler=guard_handler(name, handler, effective_timeout),
            description=description,
            input_schema=dict(input_schema),
            timeout=effective_timeout,
        )
        logger.debug(f"Registered tool: {name}")

    def unregister_tool(self, name: str) -> bool:
        """Remove a tool from the table. Only used to roll back a failed activation."""
        removed = self._tools.pop(name, None) is not None
        if removed:
            logger.debug(f"Unregistered tool: {name}")
        return removed

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def tool_names(self) -> List[str]:
        return list(self._tools)

    def get_definition(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    # ------------------------------------------------------------------
    # Session access
    # ------------------------------------------------------------------

    def current_session(self) -> Any:
        """Session of the request being served. Raises LookupError outside a request."""
        return self.server.request_context.session

    async def notify_tool_list_changed(self) -> bool:
        """
        Send notifications/tools/list_changed to the client.

        Returns False when there is no active session (e.g. during startup),
        in which case the client will read the full list on connect anyway.
        """
        try:
            session = self.current_session()
        except LookupError:
            logger.debug("No active session; skipping tools/list_changed notification")
            return False
        await session.send_tool_list_changed()
        logger.debug("Sent tools/list_changed notification")
        return True

    # ------------------------------------------------------------------
    # MCP request handlers
    # ------------------------------------------------------------------

    async def list_tools(self) -> List[Tool]:
        return [
            Tool(name=td.name, description=td.description, inputSchema=td.input_schema)
            for td in self._tools.values()
        ]

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]]) -> CallToolResult:
        td = self._tools.get(name)
        if td is None:
            logger.warning(f"Call to unknown or disabled tool '{name}'")
            return error_response(
                f"Tool '{name}' not found or its workflow is not enabled.",
                recovery={
                    "action": "Call list_workflows to see enabled workflows, or discover_tools to enable one",
                    "related_tools": ["list_workflows", "discover_tools", "enable_workflows"],
                },
            )
        return await td.handler(arguments or {})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_initialization_options(self) -> InitializationOptions:
        return self.server.create_initialization_options(
            notification_options=NotificationOptions(tools_changed=True),
        )

    async def run(self, read_stream, write_stream) -> None:
        await self.server.run(read_stream, write_stream, self.create_initialization_options())
