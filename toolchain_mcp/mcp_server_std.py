#!/usr/bin/env python3
"""
toolchain-mcp server - stdio entry point.

Startup order:
1. configuration from TOOLCHAIN_MCP_* environment variables
2. catalog from the YAML manifests (any fault aborts startup)
3. builtin control tools
4. startup workflows for the configured mode
"""

import asyncio
import sys
from dataclasses import dataclass
from typing import Optional

from mcp.server.stdio import stdio_server

from toolchain_mcp import __version__
from toolchain_mcp.catalog import Catalog, CatalogError
from toolchain_mcp.config import ServerConfig
from toolchain_mcp.delegation import SessionDelegate
from toolchain_mcp.logging_utils import configure_logging, get_logger
from toolchain_mcp.manifests import load_catalog
from toolchain_mcp.mcp_handlers import DiscoveryService, DoctorHandlers, IntrospectionHandlers
from toolchain_mcp.registry import ActivationError, RegistryMode, WorkflowRegistry
from toolchain_mcp.tool_server import ToolServer

logger = get_logger(__name__)


@dataclass
class ServerContext:
    config: ServerConfig
    catalog: Catalog
    tool_server: ToolServer
    registry: WorkflowRegistry
    discovery: Optional[DiscoveryService] = None


async def build_server(config: ServerConfig, catalog: Optional[Catalog] = None) -> ServerContext:
    """
    Assemble a ready-to-run server.

    Raises:
        CatalogError: manifests are missing or invalid
        ActivationError: a startup workflow failed to register
    """
    if catalog is None:
        catalog = load_catalog(config.manifests_dir)

    tool_server = ToolServer(config.server_name, __version__, default_timeout=config.default_tool_timeout)
    mode = RegistryMode.DYNAMIC if config.dynamic_tools else RegistryMode.STATIC
    registry = WorkflowRegistry(catalog, tool_server, mode=mode)

    builtins = []
    discovery = None
    if mode is RegistryMode.DYNAMIC:
        discovery = DiscoveryService(
            registry,
            SessionDelegate(tool_server.current_session),
            max_tokens=config.llm_max_tokens,
            temperature=config.llm_temperature,
        )
        builtins.extend(discovery.tool_definitions())
    builtins.extend(IntrospectionHandlers(registry).tool_definitions())
    builtins.extend(DoctorHandlers(registry, config).tool_definitions())

    for definition in builtins:
        await tool_server.register_tool(
            definition["name"],
            definition["description"],
            definition["input_schema"],
            definition["handler"],
            timeout=definition["timeout"],
        )

    await registry.bootstrap(config.enabled_workflows)
    logger.info(
        f"{config.server_name} v{__version__} ready in {mode.value} mode: "
        f"{len(tool_server.tool_names())} tools registered"
    )
    return ServerContext(
        config=config,
        catalog=catalog,
        tool_server=tool_server,
        registry=registry,
        discovery=discovery,
    )


async def run_stdio(config: ServerConfig) -> None:
    context = await build_server(config)
    async with stdio_server() as (read_stream, write_stream):
        await context.tool_server.run(read_stream, write_stream)


def main() -> None:
    """Console entry point (toolchain-mcp)."""
    config = ServerConfig.from_env()
    configure_logging(config.log_level)

    try:
        asyncio.run(run_stdio(config))
    except CatalogError as e:
        logger.error(f"Invalid tool manifests: {e}")
        sys.exit(1)
    except ActivationError as e:
        logger.error(f"Startup workflows failed to register: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
