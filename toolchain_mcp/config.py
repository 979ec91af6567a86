"""
Server configuration loaded from TOOLCHAIN_MCP_* environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from toolchain_mcp.logging_utils import get_logger

logger = get_logger(__name__)

ENV_PREFIX = "TOOLCHAIN_MCP_"

DEFAULT_MANIFESTS_DIR = Path(__file__).parent / "manifests"


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_int(name: str, value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        parsed = int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}, using {default}")
        return default
    if parsed <= 0:
        logger.warning(f"Ignoring non-positive {name}={value!r}, using {default}")
        return default
    return parsed


def _parse_float(name: str, value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}")
        return default


@dataclass(frozen=True)
class ServerConfig:
    """Runtime configuration for the toolchain MCP server."""

    # Dynamic mode: no workflow is enabled until discover_tools/enable_workflows runs
    dynamic_tools: bool = False

    # Static mode only: restrict startup to these workflows (empty = all default-enabled)
    enabled_workflows: Tuple[str, ...] = ()

    # Delegation (sampling) request parameters
    llm_max_tokens: int = 200
    llm_temperature: Optional[float] = None

    manifests_dir: Path = field(default=DEFAULT_MANIFESTS_DIR)
    log_level: str = "INFO"
    default_tool_timeout: float = 300.0

    server_name: str = "toolchain-mcp"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build a config from the environment (os.environ by default)."""
        env = os.environ if environ is None else environ

        def get(key: str) -> Optional[str]:
            return env.get(ENV_PREFIX + key)

        manifests = get("MANIFESTS_DIR")
        timeout = _parse_int(ENV_PREFIX + "TOOL_TIMEOUT", get("TOOL_TIMEOUT"), 300)

        return cls(
            dynamic_tools=_parse_bool(get("DYNAMIC_TOOLS")),
            enabled_workflows=_parse_list(get("ENABLED_WORKFLOWS")),
            llm_max_tokens=_parse_int(ENV_PREFIX + "LLM_MAX_TOKENS", get("LLM_MAX_TOKENS"), 200),
            llm_temperature=_parse_float(ENV_PREFIX + "LLM_TEMPERATURE", get("LLM_TEMPERATURE"), None),
            manifests_dir=Path(manifests).expanduser() if manifests else DEFAULT_MANIFESTS_DIR,
            log_level=(get("LOG_LEVEL") or "INFO").upper(),
            default_tool_timeout=float(timeout),
        )

    @property
    def mode_name(self) -> str:
        return "dynamic" if self.dynamic_tools else "static"
