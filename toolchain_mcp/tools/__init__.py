"""
Toolchain tool handlers referenced from the YAML manifests.

Each handler validates a few parameters, assembles a command line, runs it
through the default CommandExecutor and formats the result as text.
"""

from typing import Any, Dict, List

from toolchain_mcp.mcp_handlers.utils import error_response


class MissingParameterError(ValueError):
    pass


def require(arguments: Dict[str, Any], *names: str) -> None:
    missing = [name for name in names if not arguments.get(name)]
    if missing:
        raise MissingParameterError(f"Missing required parameter(s): {', '.join(missing)}")


def require_one_of(arguments: Dict[str, Any], *names: str) -> str:
    """Exactly one of `names` must be given; returns the one that was."""
    present = [name for name in names if arguments.get(name)]
    if len(present) != 1:
        raise MissingParameterError(f"Provide exactly one of: {', '.join(names)}")
    return present[0]


def parameter_error(e: MissingParameterError):
    return error_response(str(e))


def extra_args(arguments: Dict[str, Any]) -> List[str]:
    value = arguments.get("extra_args") or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MissingParameterError("extra_args must be a list of strings")
    return list(value)
