"""
Test cases for the conversation turn engine.
"""

import pytest
from pydantic import BaseModel

from relaykit.assistant.coordinator.turn_engine import TurnRequest
from relaykit.assistant.core.models import (
    CompletionResponse, ConversationState, FunctionCallOutputItem, MessageItem,
    ReasoningOutput, ToolVisibility
)

from conftest import call, make_tool, message, server_config


class NoParams(BaseModel):
    pass


def request(text="Deploy api", token=None, **kwargs):
    return TurnRequest(
        state=ConversationState(items=[MessageItem.user(text)], continuation_token=token),
        instructions="Be helpful",
        model="gpt-5-mini",
        **kwargs,
    )


class TestConversationTurnEngine:
    """Test cases for ConversationTurnEngine."""

    @pytest.fixture
    async def deploy_server(self, external_tools, connection_factory):
        connection_factory.define(
            "deploy",
            tools=[make_tool("deploy", "run", {"service": {"type": "string"}}, ["service"])],
            responses={"run": lambda args: f"deployed {args['service']}"},
        )
        await external_tools.refresh({"deploy": server_config()})
        await external_tools.wait_for_discovery()
        return external_tools

    async def test_single_round_text(self, engine, backend, display):
        backend.add(CompletionResponse(output_items=[message("Hello there")], continuation_token="r1"))

        outcome = await engine.run(request(label="AI(manager)"))

        assert outcome.text == "Hello there"
        assert outcome.continuation_token == "r1"
        assert outcome.rounds == 1
        assert outcome.tool_calls == 0
        assert display.texts("AI(manager)") == ["Hello there"]

    async def test_two_round_external_tool_turn(self, engine, backend, display, deploy_server, connection_factory):
        backend.add(
            CompletionResponse(
                output_items=[
                    ReasoningOutput(summary=["Need to deploy"]),
                    call("call-1", "mcp_deploy_run", '{"service": "api"}'),
                ],
                continuation_token="r1",
            ),
            CompletionResponse(output_items=[message("Deployed api")], continuation_token="r2"),
        )

        outcome = await engine.run(request(token="r0"))

        assert outcome.text == "Deployed api"
        assert outcome.continuation_token == "r2"
        assert outcome.rounds == 2
        assert outcome.tool_calls == 1

        first, second = backend.requests
        assert first.continuation_token == "r0"
        assert "mcp_deploy_run" in first.tool_names
        assert second.continuation_token == "r1"
        assert second.input_items == [
            FunctionCallOutputItem(call_id="call-1", output={"output": "deployed api"})
        ]
        assert connection_factory.latest("deploy").calls == [("run", {"service": "api"})]
        assert display.texts("Reasoning") == ["Need to deploy"]
        assert "Calling tool: mcp_deploy_run" in display.texts("AI")

    async def test_two_calls_then_final_message(self, engine, backend):
        backend.add(
            CompletionResponse(output_items=[
                call("c1", "McpListServersTool"),
                call("c2", "ListToolsCatalogTool"),
            ]),
            CompletionResponse(output_items=[message("  All listed.  ")]),
        )

        outcome = await engine.run(request())

        assert outcome.rounds == 2
        assert outcome.tool_calls == 2
        assert outcome.text == "All listed."
        assert [item.call_id for item in backend.requests[1].input_items] == ["c1", "c2"]

    async def test_duplicate_call_ids_run_once(self, engine, backend, registry):
        runs = []

        async def record(params, runtime):
            runs.append(1)
            return "ok"

        registry.register_tool("RecordTool", NoParams, record)
        backend.add(
            CompletionResponse(output_items=[call("dup", "RecordTool"), call("dup", "RecordTool")]),
            CompletionResponse(output_items=[call("dup", "RecordTool")]),
            CompletionResponse(output_items=[message("done")]),
        )

        outcome = await engine.run(request())

        assert len(runs) == 1
        assert outcome.tool_calls == 1
        # The repeated id in the second response left nothing to execute
        assert outcome.rounds == 2

    async def test_failed_tool_feeds_error_back(self, engine, backend):
        backend.add(
            CompletionResponse(output_items=[call("c1", "NoSuchTool")]),
            CompletionResponse(output_items=[message("Sorry")]),
        )

        outcome = await engine.run(request())

        error_item = backend.requests[1].input_items[0]
        assert error_item.output["status"] == "error"
        assert error_item.output["code"] == "unhandled_exception"
        assert outcome.text == "Sorry"

    async def test_speech_first_message_only(self, engine, backend, speech):
        backend.add(CompletionResponse(output_items=[
            message("First", speech_text="Short first"),
            message("Second", speech_text="Short second"),
        ]))

        await engine.run(request(speak=True))

        assert speech.spoken == ["Short first"]

    async def test_speech_disabled(self, engine, backend, speech):
        backend.add(CompletionResponse(output_items=[message("Hi")]))
        await engine.run(request(speak=False))
        assert speech.spoken == []

    async def test_speech_failure_is_ignored(self, engine, backend, speech):
        speech.fail = True
        backend.add(CompletionResponse(output_items=[message("Hi")]))

        outcome = await engine.run(request(speak=True))

        assert outcome.text == "Hi"

    async def test_backend_error_propagates(self, engine, backend):
        backend.add(RuntimeError("backend down"))
        with pytest.raises(RuntimeError, match="backend down"):
            await engine.run(request())

    async def test_visibility_restricts_declarations(self, engine, backend, deploy_server):
        await engine.run(request(visibility=ToolVisibility(
            allowed_builtin_names={"ListToolsCatalogTool"}, include_external=False
        )))

        assert backend.requests[0].tool_names == ["ListToolsCatalogTool"]

    async def test_visibility_provider_called_every_round(self, engine, backend):
        calls = []

        def provider():
            calls.append(1)
            return ToolVisibility.allow_all()

        backend.add(
            CompletionResponse(output_items=[call("c1", "ListToolsCatalogTool")]),
            CompletionResponse(output_items=[message("ok")]),
        )

        await engine.run(request(visibility_provider=provider))

        assert len(calls) == 2
