"""
Tests for toolchain_mcp/mcp_handlers/decorators.py - handler guard and result normalization.
"""

import asyncio
import logging

import pytest
from mcp.types import CallToolResult, TextContent

from toolchain_mcp.mcp_handlers.decorators import DEFAULT_TIMEOUT, guard_handler, normalize_result
from toolchain_mcp.mcp_handlers.utils import error_response, result_text, text_response


class TestNormalizeResult:

    def test_call_tool_result_passthrough(self):
        result = text_response("ok")
        assert normalize_result(result) is result

    def test_text_content(self):
        result = normalize_result(TextContent(type="text", text="hi"))
        assert result_text(result) == "hi"
        assert result.isError is False

    def test_string(self):
        assert result_text(normalize_result("plain")) == "plain"

    def test_sequence_of_text_content(self):
        result = normalize_result([TextContent(type="text", text="a"), TextContent(type="text", text="b")])
        assert result_text(result) == "a\nb"

    def test_none(self):
        assert result_text(normalize_result(None)) == ""

    def test_other_objects_stringified(self):
        assert result_text(normalize_result({"k": 1})) == "{'k': 1}"


class TestGuardHandler:

    @pytest.mark.asyncio
    async def test_passes_arguments(self):
        async def handler(arguments):
            return f"got {arguments['x']}"

        wrapped = guard_handler("t", handler, timeout=5)
        result = await wrapped({"x": 1})
        assert isinstance(result, CallToolResult)
        assert result_text(result) == "got 1"

    @pytest.mark.asyncio
    async def test_none_arguments_become_empty_dict(self):
        seen = []

        async def handler(arguments):
            seen.append(arguments)

        await guard_handler("t", handler)(None)
        assert seen == [{}]

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(arguments):
            await asyncio.sleep(1)

        result = await guard_handler("slow_tool", handler, timeout=0.01)({})
        assert result.isError
        assert "slow_tool" in result_text(result)
        assert "doctor" in result_text(result)

    @pytest.mark.asyncio
    async def test_zero_timeout_means_unbounded(self):
        async def handler(arguments):
            await asyncio.sleep(0.02)
            return "done"

        result = await guard_handler("t", handler, timeout=0)({})
        assert not result.isError

    @pytest.mark.asyncio
    async def test_exception_becomes_error(self, caplog):
        async def handler(arguments):
            raise ValueError("bad input")

        with caplog.at_level(logging.ERROR):
            result = await guard_handler("t", handler)({})

        assert result.isError
        assert "Error executing tool 't': bad input" in result_text(result)
        assert "bad input" in caplog.text

    @pytest.mark.asyncio
    async def test_error_results_pass_through(self):
        async def handler(arguments):
            return error_response("nope")

        result = await guard_handler("t", handler)({})
        assert result.isError
        assert result_text(result) == "nope"

    def test_metadata(self):
        async def handle_thing(arguments):
            return None

        wrapped = guard_handler("thing", handle_thing)
        assert wrapped._tool_name == "thing"
        assert wrapped._tool_timeout == DEFAULT_TIMEOUT
        assert wrapped.__name__ == "handle_thing"


class TestErrorResponse:

    def test_recovery_lines(self):
        result = error_response(
            "Tool missing",
            recovery={"action": "Call discover_tools", "related_tools": ["discover_tools", "list_workflows"]},
        )
        text = result_text(result)
        assert result.isError
        assert "Next step: Call discover_tools" in text
        assert "Related tools: discover_tools, list_workflows" in text

    def test_plain(self):
        assert result_text(error_response("x")) == "x"
