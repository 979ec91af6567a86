"""
Workflow Registry - runtime record of enabled workflows and registered tools.

Two operating modes:
- static: startup enables the configured workflows (all by default)
- dynamic: nothing is enabled until discover_tools / enable_workflows runs

activate() is the only writer. It is serialized with an asyncio.Lock and is
all-or-nothing: if any registration fails, registrations from that call are
removed again and the state is left exactly as it was.

Invariant after every activate() call:
    registered_tools == union(tools_of(w) for w in enabled_workflows)
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set

from toolchain_mcp.catalog import Catalog, ToolDescriptor
from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)


class RegistryMode(Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"


class ActivationError(Exception):
    """Registering a tool failed; the activation was rolled back."""

    def __init__(self, message: str, tool: Optional[str] = None):
        self.tool = tool
        super().__init__(message)


@dataclass
class RegistryState:
    """Mutable registry state. Only WorkflowRegistry.activate() writes to it."""
    mode: RegistryMode
    enabled_workflows: Set[str] = field(default_factory=set)
    registered_tools: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class ActivationResult:
    newly_registered: int
    enabled_workflows: List[str]
    activated: List[str]

    @property
    def changed(self) -> bool:
        return bool(self.activated)


@dataclass(frozen=True)
class WorkflowStatus:
    slug: str
    name: str
    description: str
    enabled: bool
    tools: List[str]
    platforms: List[str]


@dataclass(frozen=True)
class ToolStatus:
    slug: str
    name: str
    owner: str
    workflows: List[str]
    registered: bool


class WorkflowRegistry:
    """
    Activation protocol over a Catalog and a live tool table.

    Args:
        catalog: immutable workflow/tool index
        tool_server: protocol-server handle providing register_tool(),
            unregister_tool() and notify_tool_list_changed()
        mode: static or dynamic operating mode
    """

    def __init__(self, catalog: Catalog, tool_server: Any, mode: RegistryMode = RegistryMode.STATIC):
        self.catalog = catalog
        self._tool_server = tool_server
        self._state = RegistryState(mode=mode)
        self._lock = asyncio.Lock()

    @property
    def mode(self) -> RegistryMode:
        return self._state.mode

    # ------------------------------------------------------------------
    # Activation protocol
    # ------------------------------------------------------------------

    async def activate(self, workflow_slugs: Iterable[str]) -> ActivationResult:
        """
        Enable workflows and register their tools.

        Unknown slugs are dropped silently; already-enabled slugs are no-ops.
        A single tools/list_changed notification is sent per call, and only
        when something new was registered.

        Raises:
            ActivationError: a tool registration failed (state rolled back)
        """
        requested = list(dict.fromkeys(workflow_slugs))

        async with self._lock:
            known = [slug for slug in requested if slug in self.catalog]
            dropped = [slug for slug in requested if slug not in self.catalog]
            if dropped:
                logger.debug(f"Ignoring unknown workflows: {', '.join(dropped)}")

            newly_enabled = [slug for slug in known if slug not in self._state.enabled_workflows]
            pending = self._pending_tools(newly_enabled)

            registered_now: List[ToolDescriptor] = []
            try:
                for tool in pending:
                    handler = tool.resolve_handler()
                    await self._tool_server.register_tool(
                        tool.name,
                        tool.description,
                        tool.input_schema,
                        handler,
                        timeout=tool.timeout,
                    )
                    registered_now.append(tool)
            except Exception as e:
                failed = pending[len(registered_now)].slug
                for tool in reversed(registered_now):
                    self._tool_server.unregister_tool(tool.name)
                logger.error(
                    f"Activation of {', '.join(newly_enabled)} failed at tool '{failed}': {e}; "
                    f"rolled back {len(registered_now)} registrations"
                )
                raise ActivationError(f"Failed to register tool '{failed}': {e}", tool=failed) from e

            self._state.enabled_workflows.update(newly_enabled)
            self._state.registered_tools.update(tool.slug for tool in registered_now)

            if registered_now:
                try:
                    await self._tool_server.notify_tool_list_changed()
                except Exception as e:
                    # Registrations stand; the client picks them up on its next tools/list.
                    logger.warning(f"tools/list_changed notification failed: {e}")

            if newly_enabled:
                logger.info(
                    f"Enabled workflows {', '.join(newly_enabled)} "
                    f"({len(registered_now)} new tools, {len(self._state.registered_tools)} total)"
                )

            return ActivationResult(
                newly_registered=len(registered_now),
                enabled_workflows=sorted(self._state.enabled_workflows),
                activated=newly_enabled,
            )

    def _pending_tools(self, workflow_slugs: List[str]) -> List[ToolDescriptor]:
        """Tools of the given workflows that are not registered yet, each once."""
        pending: List[ToolDescriptor] = []
        seen: Set[str] = set()
        for slug in workflow_slugs:
            for tool in self.catalog.tools_of(slug):
                if tool.slug in self._state.registered_tools or tool.slug in seen:
                    continue
                seen.add(tool.slug)
                pending.append(tool)
        return pending

    def startup_workflows(self, configured: Iterable[str] = ()) -> List[str]:
        """
        Workflows to enable at process start.

        static: the configured list, or every default-enabled workflow
        dynamic: none
        Workflows flagged auto_include are added in both modes.
        """
        configured = list(configured)
        workflows = self.catalog.all_workflows()
        if self.mode is RegistryMode.STATIC:
            if configured:
                unknown = [slug for slug in configured if slug not in self.catalog]
                if unknown:
                    logger.warning(f"Configured workflows not in catalog: {', '.join(unknown)}")
                selected = [slug for slug in configured if slug in self.catalog]
            else:
                selected = [w.slug for w in workflows if w.default_enabled]
        else:
            selected = []
        selected.extend(w.slug for w in workflows if w.auto_include and w.slug not in selected)
        return selected

    async def bootstrap(self, configured: Iterable[str] = ()) -> ActivationResult:
        """Activate the startup set for the current mode."""
        startup = self.startup_workflows(configured)
        logger.info(f"Registry starting in {self.mode.value} mode with {len(startup)} workflows")
        return await self.activate(startup)

    # ------------------------------------------------------------------
    # Query surface (read-only)
    # ------------------------------------------------------------------

    def is_enabled(self, workflow_slug: str) -> bool:
        return workflow_slug in self._state.enabled_workflows

    def enabled_workflows(self) -> List[str]:
        return sorted(self._state.enabled_workflows)

    def registered_tools(self) -> List[str]:
        return sorted(self._state.registered_tools)

    def list_workflows(self) -> List[WorkflowStatus]:
        return [
            WorkflowStatus(
                slug=w.slug,
                name=w.name,
                description=w.description,
                enabled=self.is_enabled(w.slug),
                tools=[t.name for t in self.catalog.tools_of(w.slug)],
                platforms=sorted(w.platforms),
            )
            for w in self.catalog.all_workflows()
        ]

    def list_tools(self) -> List[ToolStatus]:
        return [
            ToolStatus(
                slug=t.slug,
                name=t.name,
                owner=t.owner,
                workflows=list(t.workflows),
                registered=t.slug in self._state.registered_tools,
            )
            for t in self.catalog.all_tools()
        ]

    def summary(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "workflows_total": len(self.catalog),
            "workflows_enabled": self.enabled_workflows(),
            "tools_total": len(self.catalog.all_tools()),
            "tools_registered": len(self._state.registered_tools),
        }
