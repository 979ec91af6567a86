"""
Standardized logging configuration.

All output goes to stderr: stdout belongs to the stdio MCP transport and any
stray write there corrupts the JSON-RPC stream.
"""

import logging
import os
import sys
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Get a module logger (thin wrapper so every module logs the same way)."""
    return logging.getLogger(name)


def configure_logging(level: Optional[Union[str, int]] = None) -> None:
    """
    Configure the root logger once.

    Args:
        level: Log level name or number. Defaults to TOOLCHAIN_MCP_LOG_LEVEL, then INFO.
    """
    global _configured

    if level is None:
        level = os.getenv("TOOLCHAIN_MCP_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
