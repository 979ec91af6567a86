"""
Doctor - environment and registry diagnostics.
"""

import os
import platform
import shutil
import sys
import time
from typing import Any, Dict, List, Optional

import psutil
from mcp.types import CallToolResult

from toolchain_mcp import __version__
from toolchain_mcp.config import ServerConfig
from toolchain_mcp.logging_utils import get_logger
from toolchain_mcp.registry import WorkflowRegistry
from .utils import text_response

logger = get_logger(__name__)

TOOLCHAIN_BINARIES = ("xcodebuild", "xcrun", "swift", "xcode-select")


def collect_binaries() -> Dict[str, Optional[str]]:
    return {name: shutil.which(name) for name in TOOLCHAIN_BINARIES}


def collect_process_info() -> Dict[str, Any]:
    info: Dict[str, Any] = {"pid": os.getpid()}
    try:
        process = psutil.Process()
        info["memory_rss_mb"] = round(process.memory_info().rss / (1024 * 1024), 1)
        info["uptime_s"] = round(max(0.0, time.time() - process.create_time()), 1)
        parent = process.parent()
        if parent:
            info["parent"] = parent.name()
    except (psutil.NoSuchProcess, psutil.AccessDenied) as e:
        logger.debug(f"Could not read process info: {e}")
    return info


def collect_report(registry: WorkflowRegistry, config: ServerConfig) -> Dict[str, Any]:
    return {
        "server": {"name": config.server_name, "version": __version__},
        "system": {
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "machine": platform.machine(),
        },
        "process": collect_process_info(),
        "binaries": collect_binaries(),
        "registry": registry.summary(),
        "config": {
            "dynamic_tools": config.dynamic_tools,
            "enabled_workflows": list(config.enabled_workflows),
            "llm_max_tokens": config.llm_max_tokens,
            "llm_temperature": config.llm_temperature,
            "manifests_dir": str(config.manifests_dir),
        },
    }


def format_report(report: Dict[str, Any]) -> str:
    lines: List[str] = [f"# {report['server']['name']} doctor (v{report['server']['version']})", ""]

    lines.append("## System")
    for key, value in report["system"].items():
        lines.append(f"- {key}: {value}")

    lines.append("")
    lines.append("## Process")
    for key, value in report["process"].items():
        lines.append(f"- {key}: {value}")

    lines.append("")
    lines.append("## Toolchain")
    for name, path in report["binaries"].items():
        lines.append(f"- {name}: {path or 'not found'}")

    registry = report["registry"]
    lines.append("")
    lines.append("## Tool registry")
    lines.append(f"- Mode: {registry['mode']}")
    lines.append(f"- Enabled workflows: {len(registry['workflows_enabled'])}/{registry['workflows_total']}")
    if registry["workflows_enabled"]:
        lines.append(f"- Workflows: {', '.join(registry['workflows_enabled'])}")
    lines.append(f"- Registered tools: {registry['tools_registered']}/{registry['tools_total']}")

    lines.append("")
    lines.append("## Configuration")
    for key, value in report["config"].items():
        lines.append(f"- {key}: {value}")

    return "\n".join(lines)


class DoctorHandlers:
    def __init__(self, registry: WorkflowRegistry, config: ServerConfig):
        self.registry = registry
        self.config = config

    async def handle_doctor(self, arguments: Dict[str, Any]) -> CallToolResult:
        """Report toolchain availability, process info and registry status."""
        return text_response(format_report(collect_report(self.registry, self.config)))

    def tool_definitions(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": "doctor",
                "description": "Diagnose the environment: toolchain binaries, server process and enabled workflows.",
                "input_schema": {"type": "object", "properties": {}},
                "handler": self.handle_doctor,
                "timeout": 10.0,
            },
        ]
