"""
Pytest configuration and fixtures for toolchain-mcp tests.
"""
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from toolchain_mcp.catalog import Catalog, ToolDescriptor, WorkflowDescriptor
from toolchain_mcp.delegation import ContentItem, ContentSequence, DelegatedResponse, SingleContent
from toolchain_mcp.tools.command import CommandResult, set_default_executor


# Any importable callable works as a catalog handler reference in tests.
HANDLER = "toolchain_mcp.tools.simctl:open_sim"
MISSING_HANDLER = "toolchain_mcp.tools.simctl:no_such_handler"


def workflow(slug: str, description: Optional[str] = None, **kwargs) -> WorkflowDescriptor:
    return WorkflowDescriptor(
        slug=slug,
        name=kwargs.pop("name", slug.replace("-", " ").title()),
        description=description or f"{slug} workflow",
        **kwargs,
    )


def tool(slug: str, owner: str, reexported_by=(), handler: str = HANDLER, **kwargs) -> ToolDescriptor:
    return ToolDescriptor(
        slug=slug,
        description=kwargs.pop("description", f"{slug} tool"),
        handler=handler,
        owner=owner,
        reexported_by=frozenset(reexported_by),
        **kwargs,
    )


def build_sample_catalog() -> Catalog:
    """
    sim   owns build_sim, test_sim; re-exports list_sims, discover_projs
    sim-management owns list_sims, boot_sim
    discovery owns discover_projs
    mac   owns build_mac; re-exports discover_projs
    """
    return Catalog(
        [
            workflow("sim", "iOS Simulator workflow", name="Simulator"),
            workflow("sim-management", "Manage simulators", name="Simulator Management"),
            workflow("discovery", "Find projects", name="Discovery"),
            workflow("mac", "macOS workflow", name="macOS"),
        ],
        [
            tool("build_sim", "sim"),
            tool("test_sim", "sim"),
            tool("list_sims", "sim-management", reexported_by=["sim"]),
            tool("boot_sim", "sim-management"),
            tool("discover_projs", "discovery", reexported_by=["sim", "mac"]),
            tool("build_mac", "mac"),
        ],
    )


class FakeToolServer:
    """
    In-memory protocol-server handle.

    fail_on: tool name whose registration raises
    """

    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.tools: Dict[str, Dict[str, Any]] = {}
        self.register_calls: List[str] = []
        self.unregister_calls: List[str] = []
        self.notifications = 0

    async def register_tool(self, name, description, input_schema, handler, timeout=None):
        self.register_calls.append(name)
        if name == self.fail_on:
            raise RuntimeError(f"registration of {name} refused")
        if name in self.tools:
            raise RuntimeError(f"{name} already registered")
        self.tools[name] = {
            "description": description,
            "input_schema": input_schema,
            "handler": handler,
            "timeout": timeout,
        }

    def unregister_tool(self, name):
        self.unregister_calls.append(name)
        return self.tools.pop(name, None) is not None

    async def notify_tool_list_changed(self):
        self.notifications += 1
        return True


class FakeDelegate:
    """
    DelegationTransport double.

    response: DelegatedResponse to return, or an exception instance to raise
    """

    def __init__(self, response: Any = None, supported: bool = True):
        self.response = response
        self.supported = supported
        self.capability_checks = 0
        self.prompts: List[str] = []
        self.max_tokens: List[int] = []
        self.temperatures: List[Optional[float]] = []

    def supports_delegation(self) -> bool:
        self.capability_checks += 1
        return self.supported

    async def request(self, prompt, max_tokens, temperature=None) -> DelegatedResponse:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        self.temperatures.append(temperature)
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response


def text_reply(text: str) -> DelegatedResponse:
    return SingleContent(ContentItem(type="text", text=text))


def sequence_reply(*texts: str) -> DelegatedResponse:
    return ContentSequence(tuple(ContentItem(type="text", text=t) for t in texts))


class FakeExecutor:
    """Records command lines and replays canned results."""

    def __init__(self, results: Optional[List[CommandResult]] = None,
                 responder: Optional[Callable[[List[str]], CommandResult]] = None):
        self.results = list(results or [])
        self.responder = responder
        self.calls: List[List[str]] = []

    async def run(self, args, cwd=None, env=None, timeout=None):
        self.calls.append(list(args))
        if self.responder is not None:
            return self.responder(list(args))
        if self.results:
            return self.results.pop(0)
        return CommandResult(args=list(args), returncode=0)


@pytest.fixture
def sample_catalog():
    return build_sample_catalog()


@pytest.fixture
def fake_server():
    return FakeToolServer()


@pytest.fixture
def fake_executor():
    """Install a FakeExecutor as the default command executor for one test."""
    executor = FakeExecutor()
    previous = set_default_executor(executor)
    yield executor
    set_default_executor(previous)
