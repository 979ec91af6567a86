"""
Simulator management through `xcrun simctl`.
"""

import json
from typing import Any, Dict, List

from mcp.types import CallToolResult

from toolchain_mcp.logging_utils import get_logger
from toolchain_mcp.mcp_handlers.utils import error_response, text_response
from toolchain_mcp.tools import MissingParameterError, parameter_error, require
from toolchain_mcp.tools.command import format_command_result, get_default_executor

logger = get_logger(__name__)


def format_device_list(data: Dict[str, Any], available_only: bool = True) -> str:
    lines: List[str] = []
    for runtime, devices in sorted(data.get("devices", {}).items()):
        shown = [d for d in devices if d.get("isAvailable", True) or not available_only]
        if not shown:
            continue
        lines.append(runtime.rsplit(".", 1)[-1].replace("-", " ", 1).replace("-", "."))
        for device in shown:
            lines.append(f"- {device.get('name')} ({device.get('udid')}) [{device.get('state', 'Unknown')}]")
        lines.append("")
    return "\n".join(lines).rstrip()


async def list_sims(arguments: Dict[str, Any]) -> CallToolResult:
    """List simulators grouped by runtime."""
    available_only = arguments.get("available_only", True) is not False
    result = await get_default_executor().run(["xcrun", "simctl", "list", "devices", "--json"])
    if not result.success:
        return text_response(format_command_result("Listing simulators", result), is_error=True)

    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError as e:
        logger.error(f"simctl returned invalid JSON: {e}")
        return error_response(f"Could not parse simulator list: {e}")

    listing = format_device_list(data, available_only=available_only)
    if not listing:
        return text_response("No simulators found.")
    return text_response("Available simulators:\n\n" + listing)


async def _simctl(title: str, args: List[str]) -> CallToolResult:
    result = await get_default_executor().run(["xcrun", "simctl", *args])
    return text_response(format_command_result(title, result), is_error=not result.success)


async def boot_sim(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        require(arguments, "simulator_id")
    except MissingParameterError as e:
        return parameter_error(e)
    return await _simctl("Booting simulator", ["boot", arguments["simulator_id"]])


async def open_sim(arguments: Dict[str, Any]) -> CallToolResult:
    """Bring the Simulator app to the foreground."""
    result = await get_default_executor().run(["open", "-a", "Simulator"])
    return text_response(format_command_result("Opening Simulator app", result), is_error=not result.success)


async def install_app_sim(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        require(arguments, "simulator_id", "app_path")
    except MissingParameterError as e:
        return parameter_error(e)
    return await _simctl("Installing app", ["install", arguments["simulator_id"], arguments["app_path"]])


async def launch_app_sim(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        require(arguments, "simulator_id", "bundle_id")
    except MissingParameterError as e:
        return parameter_error(e)
    args = ["launch", arguments["simulator_id"], arguments["bundle_id"]]
    launch_args = arguments.get("args") or []
    if not isinstance(launch_args, list):
        return error_response("args must be a list of strings")
    args.extend(str(a) for a in launch_args)
    return await _simctl("Launching app", args)
