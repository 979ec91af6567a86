"""
Swift Package Manager tools.
"""

from typing import Any, Dict, List

from mcp.types import CallToolResult

from toolchain_mcp.mcp_handlers.utils import text_response
from toolchain_mcp.tools import MissingParameterError, extra_args, parameter_error, require
from toolchain_mcp.tools.command import format_command_result, get_default_executor

VALID_CONFIGURATIONS = ("debug", "release")


def swift_command(subcommand: str, arguments: Dict[str, Any], with_configuration: bool = True) -> List[str]:
    require(arguments, "package_path")
    args = ["swift", *subcommand.split(), "--package-path", arguments["package_path"]]
    if with_configuration:
        configuration = (arguments.get("configuration") or "debug").lower()
        if configuration not in VALID_CONFIGURATIONS:
            raise MissingParameterError(f"configuration must be one of: {', '.join(VALID_CONFIGURATIONS)}")
        args.extend(["-c", configuration])
    args.extend(extra_args(arguments))
    return args


async def _run_swift(title: str, args: List[str]) -> CallToolResult:
    result = await get_default_executor().run(args)
    return text_response(format_command_result(title, result), is_error=not result.success)


async def swift_package_build(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = swift_command("build", arguments)
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_swift("Swift package build", args)


async def swift_package_test(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = swift_command("test", arguments)
    except MissingParameterError as e:
        return parameter_error(e)
    if arguments.get("filter"):
        args.extend(["--filter", arguments["filter"]])
    return await _run_swift("Swift package tests", args)


async def swift_package_clean(arguments: Dict[str, Any]) -> CallToolResult:
    try:
        args = swift_command("package clean", arguments, with_configuration=False)
    except MissingParameterError as e:
        return parameter_error(e)
    return await _run_swift("Swift package clean", args)
