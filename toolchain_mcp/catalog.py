"""
Workflow Catalog - immutable index of workflows and the tools they expose.

A tool has exactly one owning workflow and may be re-exported by others:
one implementation, reachable by name from several workflow namespaces.
The catalog is built once at startup and never mutated afterwards, so it is
safe to read from any coroutine without locking.
"""

import importlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)


class CatalogError(Exception):
    """Configuration fault in workflow/tool definitions. Aborts startup."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(f"{message} (in {source})" if source else message)


@dataclass(frozen=True)
class WorkflowDescriptor:
    """A named group of tools covering one development capability area."""
    slug: str
    name: str
    description: str
    platforms: FrozenSet[str] = frozenset()
    auto_include: bool = False
    default_enabled: bool = True


@dataclass(frozen=True)
class ToolDescriptor:
    """A single tool and its place in the workflow namespace."""
    slug: str
    description: str
    handler: str  # "package.module:function"
    owner: str
    name: str = ""
    input_schema: Mapping[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}},
        hash=False,
        compare=False,
    )
    reexported_by: FrozenSet[str] = frozenset()
    timeout: Optional[float] = None

    def __post_init__(self):
        if not self.name:
            object.__setattr__(self, "name", self.slug)

    @property
    def workflows(self) -> Tuple[str, ...]:
        """Owner first, then re-exporting workflows (sorted)."""
        return (self.owner,) + tuple(sorted(self.reexported_by))

    def resolve_handler(self) -> Callable:
        """Import and return the handler callable referenced by this tool."""
        module_path, sep, attr = self.handler.partition(":")
        if not sep or not module_path or not attr:
            raise ImportError(f"Invalid handler reference '{self.handler}' for tool '{self.slug}'")
        module = importlib.import_module(module_path)
        try:
            handler = getattr(module, attr)
        except AttributeError as e:
            raise ImportError(f"Handler '{self.handler}' for tool '{self.slug}' not found") from e
        if not callable(handler):
            raise ImportError(f"Handler '{self.handler}' for tool '{self.slug}' is not callable")
        return handler


class Catalog:
    """
    Read-only index of workflows and tools.

    Raises CatalogError on construction if:
    - a workflow or tool slug is declared twice
    - a tool's owner is not a known workflow
    - a tool is re-exported by an unknown workflow, or by its own owner
    - two tools reachable from one workflow share a caller-visible name
    - two tools anywhere in the catalog share a caller-visible name (every
      enabled tool lives in the same MCP tool list)
    """

    def __init__(
        self,
        workflows: Iterable[WorkflowDescriptor],
        tools: Iterable[ToolDescriptor],
        source: Optional[str] = None,
    ):
        self._workflows: Dict[str, WorkflowDescriptor] = {}
        self._tools: Dict[str, ToolDescriptor] = {}
        self._workflow_tools: Dict[str, List[str]] = {}

        for workflow in workflows:
            if workflow.slug in self._workflows:
                raise CatalogError(f"Duplicate workflow '{workflow.slug}'", source)
            self._workflows[workflow.slug] = workflow
            self._workflow_tools[workflow.slug] = []

        tool_list = list(tools)
        for tool in tool_list:
            if tool.slug in self._tools:
                raise CatalogError(f"Duplicate tool '{tool.slug}'", source)
            if tool.owner not in self._workflows:
                raise CatalogError(
                    f"Tool '{tool.slug}' is owned by unknown workflow '{tool.owner}'", source
                )
            for workflow_slug in tool.reexported_by:
                if workflow_slug == tool.owner:
                    raise CatalogError(
                        f"Tool '{tool.slug}' cannot be re-exported by its owner '{tool.owner}'", source
                    )
                if workflow_slug not in self._workflows:
                    raise CatalogError(
                        f"Tool '{tool.slug}' is re-exported by unknown workflow '{workflow_slug}'", source
                    )
            self._tools[tool.slug] = tool

        # Owned tools first, in declaration order; re-exports after.
        for tool in tool_list:
            self._workflow_tools[tool.owner].append(tool.slug)
        for tool in tool_list:
            for workflow_slug in sorted(tool.reexported_by):
                self._workflow_tools[workflow_slug].append(tool.slug)

        for workflow_slug, tool_slugs in self._workflow_tools.items():
            seen: Dict[str, str] = {}
            for tool_slug in tool_slugs:
                name = self._tools[tool_slug].name
                if name in seen:
                    raise CatalogError(
                        f"Tools '{seen[name]}' and '{tool_slug}' share the name '{name}' "
                        f"in workflow '{workflow_slug}'",
                        source,
                    )
                seen[name] = tool_slug

        # The live tool table is one flat namespace across all workflows
        names: Dict[str, str] = {}
        for tool in tool_list:
            if tool.name in names:
                raise CatalogError(
                    f"Tools '{names[tool.name]}' and '{tool.slug}' share the name '{tool.name}'; "
                    f"tool names must be unique across workflows",
                    source,
                )
            names[tool.name] = tool.slug

        logger.debug(f"Catalog built: {len(self._workflows)} workflows, {len(self._tools)} tools")

    def lookup(self, slug: str) -> Optional[WorkflowDescriptor]:
        return self._workflows.get(slug)

    def tool(self, slug: str) -> Optional[ToolDescriptor]:
        return self._tools.get(slug)

    def tools_of(self, slug: str) -> List[ToolDescriptor]:
        """Tools reachable from a workflow (owned, then re-exported). Empty if unknown."""
        return [self._tools[t] for t in self._workflow_tools.get(slug, ())]

    def all_workflows(self) -> List[WorkflowDescriptor]:
        """All workflows ordered by display name, then slug."""
        return sorted(self._workflows.values(), key=lambda w: (w.name.lower(), w.slug))

    def all_tools(self) -> List[ToolDescriptor]:
        return sorted(self._tools.values(), key=lambda t: t.slug)

    def workflow_slugs(self) -> List[str]:
        return [w.slug for w in self.all_workflows()]

    def workflows_of_tool(self, tool_slug: str) -> Tuple[str, ...]:
        tool = self._tools.get(tool_slug)
        return tool.workflows if tool else ()

    def __contains__(self, slug: object) -> bool:
        return slug in self._workflows

    def __len__(self) -> int:
        return len(self._workflows)

    def __repr__(self) -> str:
        return f"Catalog(workflows={len(self._workflows)}, tools={len(self._tools)})"
