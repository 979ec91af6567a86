"""
toolchain-mcp: an MCP server exposing development-toolchain tools grouped
into workflows, with optional model-assisted dynamic tool discovery.
"""

__version__ = "0.1.0"
