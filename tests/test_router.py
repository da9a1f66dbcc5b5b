"""
Test cases for the tool router.
"""

import asyncio
import json

import pytest
from pydantic import BaseModel, Field

from relaykit.assistant.core.enums import ErrorCode
from relaykit.assistant.tools.router import normalize_result

from conftest import call, make_tool, server_config


class EchoParams(BaseModel):
    """Echo the given text."""

    text: str = Field(..., description="Text to echo")
    times: int = Field(default=1, ge=1)


class EchoResult(BaseModel):
    echoed: str


class TestNormalizeResult:
    """Test cases for result normalization."""

    def test_string_is_wrapped(self):
        assert normalize_result("hello") == {"text": "hello"}

    def test_model_is_dumped(self):
        assert normalize_result(EchoResult(echoed="hi")) == {"echoed": "hi"}

    def test_unknown_objects_become_strings(self):
        class Opaque:
            def __str__(self):
                return "opaque"

        assert normalize_result({"value": Opaque()}) == {"value": "opaque"}


class TestToolRouter:
    """Test cases for routing function calls."""

    @pytest.fixture
    def echo_registry(self, registry):
        async def echo(params: EchoParams, runtime):
            return EchoResult(echoed=params.text * params.times)

        def shout(params: EchoParams, runtime):
            return params.text.upper()

        async def explode(params: EchoParams, runtime):
            raise RuntimeError("kaboom")

        registry.register_tool("EchoTool", EchoParams, echo)
        registry.register_tool("ShoutTool", EchoParams, shout)
        registry.register_tool("ExplodeTool", EchoParams, explode)
        return registry

    @pytest.fixture
    async def with_deploy_server(self, external_tools, connection_factory, mapper):
        connection_factory.define(
            "deploy",
            tools=[make_tool("deploy", "run", {"service": {"type": "string"}}, ["service"])],
            responses={"run": lambda args: f"deployed {args['service']}"},
        )
        await external_tools.refresh({"deploy": server_config()})
        await external_tools.wait_for_discovery()
        mapper.rebuild({"deploy": ["run"]})
        return external_tools

    async def test_builtin_async_handler(self, router, runtime, echo_registry):
        result = await router.route(call("c1", "EchoTool", '{"text": "ab", "times": 2}'), runtime)
        assert result == {"echoed": "abab"}

    async def test_builtin_sync_handler(self, router, runtime, echo_registry):
        result = await router.route(call("c1", "ShoutTool", '{"text": "hey"}'), runtime)
        assert result == {"text": "HEY"}

    async def test_unknown_tool(self, router, runtime, display):
        result = await router.route(call("c1", "NoSuchTool"), runtime)

        assert result == {
            "status": "error",
            "tool": "NoSuchTool",
            "code": "unhandled_exception",
            "hint": "Unknown tool: NoSuchTool",
        }
        assert display.texts("Tool NoSuchTool")

    async def test_invalid_arguments(self, router, runtime, echo_registry):
        result = await router.route(call("c1", "EchoTool", '{"times": 0}'), runtime)

        assert result["status"] == "error"
        assert result["code"] == str(ErrorCode.UNHANDLED_EXCEPTION)
        assert result["hint"].startswith("Invalid arguments: ")
        assert "text" in result["hint"]

    async def test_handler_exception(self, router, runtime, echo_registry, display):
        result = await router.route(call("c1", "ExplodeTool", '{"text": "x"}'), runtime)

        assert result == {"status": "error", "tool": "ExplodeTool", "code": "unhandled_exception"}
        assert display.texts("Tool ExplodeTool") == ["Failed: RuntimeError: kaboom"]

    async def test_malformed_json_treated_as_empty(self, router, runtime, echo_registry):
        result = await router.route(call("c1", "ShoutTool", "{not json"), runtime)
        # Empty arguments fail validation for the required field
        assert result["hint"].startswith("Invalid arguments")

    async def test_mapped_external_name(self, router, runtime, with_deploy_server):
        result = await router.route(call("c1", "mcp_deploy_run", '{"service": "api"}'), runtime)
        assert result == {"output": "deployed api"}

    async def test_dotted_external_name(self, router, runtime, with_deploy_server):
        result = await router.route(call("c1", "deploy.run", '{"service": "web"}'), runtime)
        assert result == {"output": "deployed web"}

    async def test_external_error_payload(self, router, runtime, with_deploy_server):
        result = await router.route(call("c1", "mcp_deploy_run", "{}"), runtime)

        assert result["status"] == "error"
        assert result["tool"] == "mcp_deploy_run"
        assert result["code"] == "missing_required_parameter"
        assert result["output"].startswith("Missing required parameter(s): service")

    async def test_results_are_json_serializable(self, router, runtime, echo_registry, with_deploy_server):
        for name, args in [("EchoTool", '{"text": "a"}'), ("Nope", "{}"), ("deploy.run", "{}")]:
            json.dumps(await router.route(call("c1", name, args), runtime))

    async def test_cancellation_propagates(self, router, runtime, registry):
        started = asyncio.Event()

        async def hang(params: EchoParams, runtime):
            started.set()
            await asyncio.sleep(10)

        registry.register_tool("HangTool", EchoParams, hang)
        task = asyncio.create_task(router.route(call("c1", "HangTool", '{"text": "x"}'), runtime))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
