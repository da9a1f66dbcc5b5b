"""
Test cases for the OpenAI Responses API backend.

The OpenAI client is replaced with a mock; no network access is needed.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from openai import OpenAIError

from relaykit.assistant.adapters.openai_responses_adapter import (
    OpenAIResponsesBackend, encode_input_item, parse_output, parse_reply_text
)
from relaykit.assistant.core.exceptions import BackendError
from relaykit.assistant.core.models import (
    FunctionCallOutputItem, MessageItem, MessageOutput, ReasoningOutput, ToolCall, ToolDeclaration
)


DECLARATION = ToolDeclaration(
    name="mcp_deploy_run",
    description="Run a deployment",
    parameters={"type": "object", "properties": {"service": {"type": "string"}}, "required": ["service"]},
)


class TestEncoding:
    """Test cases for request encoding helpers."""

    def test_encode_message(self):
        assert encode_input_item(MessageItem.user("hi")) == {
            "type": "message",
            "role": "user",
            "content": [{"type": "input_text", "text": "hi"}],
        }

    def test_encode_function_call_output(self):
        encoded = encode_input_item(FunctionCallOutputItem(call_id="c1", output={"output": "ok"}))

        assert encoded["type"] == "function_call_output"
        assert encoded["call_id"] == "c1"
        assert json.loads(encoded["output"]) == {"output": "ok"}


class TestParsing:
    """Test cases for response parsing helpers."""

    def test_parse_structured_reply(self):
        reply = parse_reply_text('{"summaryMessage": "Deployed api", "ttsSummary": "Done!"}')
        assert reply == MessageOutput(text="Deployed api", speech_text="Done!")

    def test_parse_plain_reply(self):
        assert parse_reply_text("just text") == MessageOutput(text="just text")
        assert parse_reply_text("{broken").text == "{broken"

    def test_parse_output_items(self):
        output = [
            SimpleNamespace(type="reasoning", summary=[SimpleNamespace(text="Thinking"), SimpleNamespace(text="")]),
            {"type": "function_call", "call_id": "c1", "name": "mcp_deploy_run", "arguments": '{"service": "api"}'},
            SimpleNamespace(type="message", content=[
                SimpleNamespace(type="output_text", text="Hello"),
                SimpleNamespace(type="refusal", refusal="No can do"),
            ]),
            SimpleNamespace(type="web_search_call"),
        ]

        assert parse_output(output) == [
            ReasoningOutput(summary=["Thinking"]),
            ToolCall(call_id="c1", name="mcp_deploy_run", arguments='{"service": "api"}'),
            MessageOutput(text="Hello"),
            MessageOutput(text="No can do"),
        ]

    def test_parse_dict_arguments(self):
        items = parse_output([{"type": "function_call", "call_id": "c1", "name": "t", "arguments": {"a": 1}}])
        assert items[0].parsed_arguments() == {"a": 1}


class TestOpenAIResponsesBackend:
    """Test cases for OpenAIResponsesBackend."""

    @pytest.fixture
    def client(self):
        client = Mock()
        client.responses.create = AsyncMock(return_value=SimpleNamespace(
            id="resp_2",
            output=[SimpleNamespace(type="message", content=[
                SimpleNamespace(type="output_text", text='{"summaryMessage": "Hi", "ttsSummary": "Hey"}')
            ])],
        ))
        return client

    def test_build_request(self, client):
        backend = OpenAIResponsesBackend(client=client, max_output_tokens=2048)

        request = backend.build_request(
            "Be helpful", [MessageItem.user("deploy")], "resp_1", "gpt-5-mini", [DECLARATION]
        )

        assert request["model"] == "gpt-5-mini"
        assert request["instructions"] == "Be helpful"
        assert request["previous_response_id"] == "resp_1"
        assert request["reasoning"] == {"effort": "low", "summary": "auto"}
        assert request["max_output_tokens"] == 2048
        assert request["tools"] == [{
            "type": "function",
            "name": "mcp_deploy_run",
            "description": "Run a deployment",
            "parameters": DECLARATION.parameters,
            "strict": False,
        }]
        text_format = request["text"]["format"]
        assert text_format["type"] == "json_schema"
        assert text_format["name"] == "Response"
        assert text_format["schema"]["required"] == ["summaryMessage", "ttsSummary"]

    def test_build_minimal_request(self, client):
        backend = OpenAIResponsesBackend(client=client, reasoning_effort=None, structured_replies=False)

        request = backend.build_request("i", [], None, "gpt-5", [])

        assert request == {"model": "gpt-5", "instructions": "i", "input": []}

    async def test_complete(self, client):
        backend = OpenAIResponsesBackend(client=client)

        response = await backend.complete("Be helpful", [MessageItem.user("hi")], None, "gpt-5-mini", [])

        assert response.continuation_token == "resp_2"
        assert response.output_items == [MessageOutput(text="Hi", speech_text="Hey")]
        kwargs = client.responses.create.await_args.kwargs
        assert "previous_response_id" not in kwargs
        assert "tools" not in kwargs

    async def test_complete_wraps_client_errors(self, client):
        client.responses.create.side_effect = OpenAIError("invalid api key")
        backend = OpenAIResponsesBackend(client=client)

        with pytest.raises(BackendError, match="invalid api key") as exc_info:
            await backend.complete("i", [MessageItem.user("hi")], "resp_1", "gpt-5-mini", [])

        assert exc_info.value.context["previous_response_id"] == "resp_1"
