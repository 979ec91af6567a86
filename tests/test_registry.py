"""
Tests for toolchain_mcp/registry.py - activation protocol and registry queries.
"""

import asyncio

import pytest

from conftest import MISSING_HANDLER, FakeToolServer, build_sample_catalog, tool, workflow
from toolchain_mcp.catalog import Catalog
from toolchain_mcp.registry import ActivationError, RegistryMode, WorkflowRegistry


def make_registry(server=None, catalog=None, mode=RegistryMode.DYNAMIC):
    return WorkflowRegistry(catalog or build_sample_catalog(), server or FakeToolServer(), mode=mode)


def assert_consistent(registry):
    """registered tools == union of tools of enabled workflows"""
    expected = set()
    for slug in registry.enabled_workflows():
        expected.update(t.slug for t in registry.catalog.tools_of(slug))
    assert set(registry.registered_tools()) == expected


class TestActivate:

    @pytest.mark.asyncio
    async def test_registers_owned_and_reexported_tools(self, fake_server):
        registry = make_registry(fake_server)
        result = await registry.activate(["sim"])

        assert result.newly_registered == 4
        assert result.enabled_workflows == ["sim"]
        assert sorted(fake_server.tools) == ["build_sim", "discover_projs", "list_sims", "test_sim"]
        assert_consistent(registry)

    @pytest.mark.asyncio
    async def test_idempotent(self, fake_server):
        registry = make_registry(fake_server)
        await registry.activate(["sim"])
        second = await registry.activate(["sim"])

        assert second.newly_registered == 0
        assert not second.changed
        assert len(fake_server.register_calls) == 4
        assert fake_server.notifications == 1
        assert_consistent(registry)

    @pytest.mark.asyncio
    async def test_reexport_registered_once(self, fake_server):
        registry = make_registry(fake_server)
        await registry.activate(["sim", "discovery", "mac"])

        assert fake_server.register_calls.count("discover_projs") == 1
        assert_consistent(registry)

    @pytest.mark.asyncio
    async def test_reexport_reused_across_calls(self, fake_server):
        registry = make_registry(fake_server)
        await registry.activate(["sim"])
        result = await registry.activate(["mac"])

        assert result.newly_registered == 1
        assert fake_server.register_calls.count("discover_projs") == 1

    @pytest.mark.asyncio
    async def test_unknown_slugs_dropped(self, fake_server):
        registry = make_registry(fake_server)
        result = await registry.activate(["mac", "not-a-workflow"])

        assert result.enabled_workflows == ["mac"]
        assert result.activated == ["mac"]

    @pytest.mark.asyncio
    async def test_only_unknown_slugs_is_noop(self, fake_server):
        registry = make_registry(fake_server)
        result = await registry.activate(["nothing"])

        assert result.newly_registered == 0
        assert fake_server.notifications == 0

    @pytest.mark.asyncio
    async def test_single_notification_per_call(self, fake_server):
        registry = make_registry(fake_server)
        await registry.activate(["sim", "mac", "sim-management"])
        assert fake_server.notifications == 1

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_registrations(self):
        server = FakeToolServer()

        async def broken_notify():
            raise RuntimeError("session closed")

        server.notify_tool_list_changed = broken_notify
        registry = make_registry(server)
        result = await registry.activate(["mac"])

        assert result.newly_registered == 2
        assert registry.is_enabled("mac")


class TestRollback:

    @pytest.mark.asyncio
    async def test_failed_registration_restores_state(self):
        server = FakeToolServer(fail_on="list_sims")
        registry = make_registry(server)
        await registry.activate(["mac"])
        before_tools = registry.registered_tools()
        before_workflows = registry.enabled_workflows()

        with pytest.raises(ActivationError) as exc_info:
            await registry.activate(["sim"])

        assert exc_info.value.tool == "list_sims"
        assert registry.registered_tools() == before_tools
        assert registry.enabled_workflows() == before_workflows
        assert sorted(server.tools) == sorted(before_tools)
        assert server.unregister_calls == ["test_sim", "build_sim"]
        assert server.notifications == 1
        assert_consistent(registry)

    @pytest.mark.asyncio
    async def test_unresolvable_handler_rolls_back(self, fake_server):
        catalog = Catalog(
            [workflow("a")],
            [tool("good", "a"), tool("broken", "a", handler=MISSING_HANDLER)],
        )
        registry = make_registry(fake_server, catalog=catalog)

        with pytest.raises(ActivationError, match="broken"):
            await registry.activate(["a"])
        assert fake_server.tools == {}
        assert registry.enabled_workflows() == []

    @pytest.mark.asyncio
    async def test_retry_after_failure(self):
        server = FakeToolServer(fail_on="build_mac")
        registry = make_registry(server)
        with pytest.raises(ActivationError):
            await registry.activate(["mac"])

        server.fail_on = None
        result = await registry.activate(["mac"])
        assert result.newly_registered == 2
        assert_consistent(registry)


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_concurrent_overlapping_activations(self):
        server = FakeToolServer()
        original = server.register_tool

        async def slow_register(*args, **kwargs):
            await asyncio.sleep(0)
            await original(*args, **kwargs)

        server.register_tool = slow_register
        registry = make_registry(server)

        results = await asyncio.gather(
            registry.activate(["sim"]),
            registry.activate(["sim", "mac"]),
        )

        assert sum(r.newly_registered for r in results) == 5
        assert server.register_calls.count("discover_projs") == 1
        assert_consistent(registry)


class TestStartup:

    def test_static_enables_default_workflows(self):
        catalog = Catalog(
            [workflow("a"), workflow("b", default_enabled=False)],
            [tool("ta", "a"), tool("tb", "b")],
        )
        registry = make_registry(catalog=catalog, mode=RegistryMode.STATIC)
        assert registry.startup_workflows() == ["a"]

    def test_static_honours_configured_list(self, sample_catalog):
        registry = make_registry(catalog=sample_catalog, mode=RegistryMode.STATIC)
        assert registry.startup_workflows(["mac", "unknown"]) == ["mac"]

    def test_dynamic_starts_empty(self, sample_catalog):
        registry = make_registry(catalog=sample_catalog, mode=RegistryMode.DYNAMIC)
        assert registry.startup_workflows(["mac"]) == []

    def test_auto_include_in_both_modes(self):
        catalog = Catalog(
            [workflow("a", default_enabled=False), workflow("core", auto_include=True)],
            [tool("ta", "a"), tool("tc", "core")],
        )
        assert make_registry(catalog=catalog, mode=RegistryMode.DYNAMIC).startup_workflows() == ["core"]
        assert make_registry(catalog=catalog, mode=RegistryMode.STATIC).startup_workflows() == ["core"]

    @pytest.mark.asyncio
    async def test_static_bootstrap_registers_everything(self, fake_server):
        registry = make_registry(fake_server, mode=RegistryMode.STATIC)
        await registry.bootstrap()

        assert len(fake_server.tools) == 6
        assert registry.enabled_workflows() == ["discovery", "mac", "sim", "sim-management"]
        assert_consistent(registry)


class TestQueries:

    @pytest.mark.asyncio
    async def test_list_workflows_reports_status(self, fake_server):
        registry = make_registry(fake_server)
        await registry.activate(["mac"])

        statuses = {s.slug: s for s in registry.list_workflows()}
        assert statuses["mac"].enabled
        assert statuses["mac"].tools == ["build_mac", "discover_projs"]
        assert not statuses["sim"].enabled

    @pytest.mark.asyncio
    async def test_list_tools_reports_registration(self, fake_server):
        registry = make_registry(fake_server)
        await registry.activate(["mac"])

        statuses = {s.slug: s for s in registry.list_tools()}
        assert statuses["discover_projs"].registered
        assert statuses["discover_projs"].workflows == ["discovery", "mac", "sim"]
        assert not statuses["build_sim"].registered

    def test_summary(self):
        registry = make_registry()
        summary = registry.summary()
        assert summary == {
            "mode": "dynamic",
            "workflows_total": 4,
            "workflows_enabled": [],
            "tools_total": 6,
            "tools_registered": 0,
        }
