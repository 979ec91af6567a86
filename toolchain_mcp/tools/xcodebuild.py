"""
xcodebuild-backed tools: build, test, clean and project inspection.
"""

from typing import Any, Dict, List

from mcp.types import CallToolResult

from toolchain_mcp.logging_utils import get_logger
from toolchain_mcp.mcp_handlers.utils import error_response, text_response
from toolchain_mcp.tools import MissingParameterError, extra_args, parameter_error, require, require_one_of
from toolchain_mcp.tools.command import format_command_result, get_default_executor

logger = get_logger(__name__)

DEFAULT_CONFIGURATION = "Debug"


def project_args(arguments: Dict[str, Any]) -> List[str]:
    """-workspace or -project flag, exactly one of which must be given."""
    which = require_one_of(arguments, "workspace_path", "project_path")
    flag = "-workspace" if which == "workspace_path" else "-project"
    return [flag, arguments[which]]


def simulator_destination(arguments: Dict[str, Any]) -> str:
    which = require_one_of(arguments, "simulator_id", "simulator_name")
    if which == "simulator_id":
        return f"platform=iOS Simulator,id={arguments['simulator_id']}"
    return f"platform=iOS Simulator,name={arguments['simulator_name']},OS=latest"


def macos_destination(arguments: Dict[str, Any]) -> str:
    arch = arguments.get("arch")
    return f"platform=macOS,arch={arch}" if arch else "platform=macOS"


def xcodebuild_command(arguments: Dict[str, Any], action: str, destination: str = None) -> List[str]:
    require(arguments, "scheme")
    args = ["xcodebuild", *project_args(arguments), "-scheme", arguments["scheme"],
            "-configuration", arguments.get("configuration") or DEFAULT_CONFIGURATION]
    if destination:
        args.extend(["-destination", destination])
    if arguments.get("derived_data_path"):
        args.extend(["-derivedDataPath", arguments["derived_data_path"]])
    args.extend(extra_args(arguments))
    args.append(action)
    return args


async def _run_xcodebuild(title: str, args: List[str]) -> CallToolResult:
    result = await get_default_executor().run(args)
    if not result.success:
        logger.info(f"{title} failed with exit code {result.returncode}")
    return text_response(format_command_result(title, result), is_error=not result.success)


async def build_sim(arguments: Dict[str, Any]) -> CallToolResult:
    """Build an app for an iOS simulator."""
    try:
        args = xcodebuild_command(arguments, "build", simulator_destination(arguments))
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_xcodebuild("iOS Simulator build", args)


async def test_sim(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = xcodebuild_command(arguments, "test", simulator_destination(arguments))
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_xcodebuild("iOS Simulator test run", args)


async def build_macos(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = xcodebuild_command(arguments, "build", macos_destination(arguments))
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_xcodebuild("macOS build", args)


async def test_macos(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = xcodebuild_command(arguments, "test", macos_destination(arguments))
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_xcodebuild("macOS test run", args)


async def clean(arguments: Dict[str, Any]) -> CallToolResult:
    """Clean build products. Scheme is optional for a plain project clean."""
    try:
        args = ["xcodebuild", *project_args(arguments)]
    except MissingParameterError as e:
        return parameter_error(e)
    if arguments.get("scheme"):
        args.extend(["-scheme", arguments["scheme"]])
    args.extend(["-configuration", arguments.get("configuration") or DEFAULT_CONFIGURATION, "clean"])
    return await _run_xcodebuild("Clean", args)


def parse_schemes(output: str) -> List[str]:
    """Scheme names from `xcodebuild -list` output."""
    schemes: List[str] = []
    in_schemes = False
    for line in output.splitlines():
        stripped = line.strip()
        if stripped == "Schemes:":
            in_schemes = True
            continue
        if in_schemes:
            if not stripped or stripped.endswith(":"):
                break
            schemes.append(stripped)
    return schemes


async def list_schemes(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = ["xcodebuild", "-list", *project_args(arguments)]
    except MissingParameterError as e:
        return parameter_error(e)

    result = await get_default_executor().run(args)
    if not result.success:
        return text_response(format_command_result("Listing schemes", result), is_error=True)

    schemes = parse_schemes(result.stdout)
    if not schemes:
        return error_response(
            "No schemes found.",
            recovery={"action": "Check the project path, or open the project in Xcode once to create shared schemes"},
        )
    return text_response("Available schemes:\n" + "\n".join(f"- {s}" for s in schemes))


async def show_build_settings(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        require(arguments, "scheme")
        args = ["xcodebuild", "-showBuildSettings", *project_args(arguments), "-scheme", arguments["scheme"]]
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_xcodebuild("Reading build settings", args)
