"""
MCP Tool Handlers

Builtin control tools (discovery, introspection, diagnostics) plus the
shared response helpers and the handler guard used by every tool.
"""

from .discovery import DiscoveryService
from .doctor import DoctorHandlers
from .introspection import IntrospectionHandlers

__all__ = [
    "DiscoveryService",
    "DoctorHandlers",
    "IntrospectionHandlers",
]
