"""
Project discovery: find Xcode projects, workspaces and Swift packages.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Tuple

from mcp.types import CallToolResult

from toolchain_mcp.logging_utils import get_logger
from toolchain_mcp.mcp_handlers.utils import error_response, text_response

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 5
SKIP_DIRS = {".git", "node_modules", "build", "DerivedData", "Pods", ".build", ".swiftpm"}


def scan(root: Path, max_depth: int) -> Tuple[List[str], List[str], List[str]]:
    """Return (projects, workspaces, packages) found under root."""
    projects: List[str] = []
    workspaces: List[str] = []
    packages: List[str] = []

    root_depth = len(root.parts)
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        depth = len(current.parts) - root_depth

        keep = []
        for name in dirnames:
            path = current / name
            if name.endswith(".xcodeproj"):
                projects.append(str(path))
            elif name.endswith(".xcworkspace"):
                # Workspaces embedded in a project are implementation detail
                if not current.name.endswith(".xcodeproj"):
                    workspaces.append(str(path))
            elif name not in SKIP_DIRS and not name.startswith(".") and depth < max_depth:
                keep.append(name)
        dirnames[:] = sorted(keep)

        if "Package.swift" in filenames:
            packages.append(str(current))

    return sorted(projects), sorted(workspaces), sorted(packages)


async def discover_projs(arguments: Dict[str, Any]) -> CallToolResult:
    """Scan a directory tree for .xcodeproj, .xcworkspace and Package.swift."""
    workspace_root = arguments.get("workspace_root")
    if not workspace_root:
        return error_response("Missing required parameter(s): workspace_root")

    root = Path(workspace_root).expanduser()
    if not root.is_dir():
        return error_response(f"Not a directory: {workspace_root}")

    try:
        max_depth = int(arguments.get("max_depth", DEFAULT_MAX_DEPTH))
    except (TypeError, ValueError):
        return error_response("max_depth must be an integer")

    projects, workspaces, packages = scan(root, max_depth)
    logger.debug(f"Discovered {len(projects)} projects, {len(workspaces)} workspaces, {len(packages)} packages")

    if not (projects or workspaces or packages):
        return text_response(f"No Xcode projects, workspaces or Swift packages found under {root}.")

    sections = []
    for title, items in (("Workspaces", workspaces), ("Projects", projects), ("Swift packages", packages)):
        if items:
            sections.append(f"{title}:\n" + "\n".join(f"- {item}" for item in items))
    return text_response("\n\n".join(sections))
