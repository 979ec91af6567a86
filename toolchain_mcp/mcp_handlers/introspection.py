"""
Workflow introspection (list_workflows).
"""

from dataclasses import asdict
from typing import Any, Dict, List

from mcp.types import CallToolResult

from toolchain_mcp.registry import WorkflowRegistry
from .utils import json_response


def _parse_bool(val: Any, default: bool) -> bool:
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        return val.lower() in ("true", "1", "yes")
    return bool(val)


class IntrospectionHandlers:
    def __init__(self, registry: WorkflowRegistry):
        self.registry = registry

    async def handle_list_workflows(self, arguments: Dict[str, Any]) -> CallToolResult:
        """List workflows with their enabled status and tools

        Parameters:
            enabled_only (bool): only list enabled workflows (default: false)
            include_tools (bool): include tool names per workflow (default: true)
        """
        enabled_only = _parse_bool(arguments.get("enabled_only"), False)
        include_tools = _parse_bool(arguments.get("include_tools"), True)

        workflows: List[Dict[str, Any]] = []
        for status in self.registry.list_workflows():
            if enabled_only and not status.enabled:
                continue
            entry = asdict(status)
            if not include_tools:
                entry.pop("tools")
            workflows.append(entry)

        return json_response({
            "mode": self.registry.mode.value,
            "enabled_workflows": self.registry.enabled_workflows(),
            "workflows": workflows,
        })

    def tool_definitions(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": "list_workflows",
                "description": "List tool workflows, whether each is enabled, and the tools it provides.",
                "input_schema": {
                    "type": "object",
                    "properties": {
                        "enabled_only": {
                            "type": "boolean",
                            "description": "Only list enabled workflows.",
                        },
                        "include_tools": {
                            "type": "boolean",
                            "description": "Include tool names for each workflow (default true).",
                        },
                    },
                },
                "handler": self.handle_list_workflows,
                "timeout": 10.0,
            },
        ]
