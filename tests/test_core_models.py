"""
Test cases for core models.
"""

import pytest
from pydantic import ValidationError

from relaykit.assistant.core.enums import ErrorCode, TransportKind
from relaykit.assistant.core.exceptions import FeatureDisabledError, TransportUnavailableError
from relaykit.assistant.core.models import (
    AgentConfig, AssistantSettings, ExternalServerConfig, ToolCall, ToolResult, ToolSchema, ToolVisibility
)


class TestExternalServerConfig:
    """Test cases for ExternalServerConfig."""

    @pytest.mark.parametrize("config,expected", [
        ({"command": "python"}, TransportKind.SUBPROCESS),
        ({"url": "ws://localhost:9000"}, TransportKind.WEBSOCKET),
        ({"url": "https://example.com/mcp"}, TransportKind.HTTP_STREAM),
        ({"url": "https://example.com/mcp", "transport": "websocket"}, TransportKind.WEBSOCKET),
        ({"url": "wss://example.com/mcp", "transport": "sse"}, TransportKind.HTTP_STREAM),
        ({"command": "python", "transport": "websocket"}, TransportKind.SUBPROCESS),
    ])
    def test_kind(self, config, expected):
        assert ExternalServerConfig(**config).kind == expected

    def test_value_equality(self):
        first = ExternalServerConfig(command="python", args=["server.py"], env={"A": "1"})

        assert first == ExternalServerConfig(command="python", args=["server.py"], env={"A": "1"})
        assert first != ExternalServerConfig(command="python", args=["server.py"], env={"A": "2"})

    def test_frozen(self):
        config = ExternalServerConfig(command="python")
        with pytest.raises(ValidationError):
            config.command = "node"


class TestToolSchema:
    """Test cases for ToolSchema."""

    def test_from_input_schema(self):
        schema = ToolSchema.from_input_schema("calc", "add", None, {
            "type": "object",
            "properties": {"a": {"type": "integer"}, "b": {"type": ["number", "null"]}, "note": {}},
            "required": ["a"],
        })

        assert schema.description == ""
        assert schema.required == ["a"]
        assert schema.qualified_name == "calc.add"
        assert schema.property_types() == {"a": "integer", "b": "number", "note": None}

    def test_from_missing_schema(self):
        schema = ToolSchema.from_input_schema("calc", "ping", "Ping", None)

        assert schema.properties == {}
        assert schema.required == []


class TestToolCallAndResult:
    """Test cases for ToolCall and ToolResult."""

    @pytest.mark.parametrize("arguments,expected", [
        ('{"a": 1}', {"a": 1}),
        ("", {}),
        ("[1, 2]", {}),
        ("not json", {}),
    ])
    def test_parsed_arguments(self, arguments, expected):
        assert ToolCall(call_id="c1", name="t", arguments=arguments).parsed_arguments() == expected

    def test_error_payload(self):
        payload = ToolResult.error("ReadFileTool", ErrorCode.MISSING_REQUIRED_PARAMETER, "path is required").to_payload()

        assert payload == {
            "status": "error",
            "tool": "ReadFileTool",
            "code": "missing_required_parameter",
            "hint": "path is required",
        }

    def test_ok_payload_is_jsonable(self):
        assert ToolResult.ok("T", {"items": ("a", "b")}).to_payload() == {"items": ["a", "b"]}


class TestVisibility:
    """Test cases for ToolVisibility and AgentConfig.visibility."""

    def test_allow_all(self):
        visibility = ToolVisibility.allow_all()

        assert visibility.allows_builtin("Anything")
        assert visibility.allows_external("deploy", "run")

    def test_empty_set_allows_nothing(self):
        visibility = ToolVisibility(allowed_builtin_names=set(), allowed_external_names=set())

        assert not visibility.allows_builtin("Anything")
        assert not visibility.allows_external("deploy", "run")

    def test_agent_without_builtins(self):
        visibility = AgentConfig(
            role="reader", allow_builtin_tools=False, allowed_builtin_names={"ReadFileTool"}
        ).visibility()

        assert visibility.allowed_builtin_names == set()
        assert visibility.include_external

    def test_agent_role_validation(self):
        with pytest.raises(ValidationError):
            AgentConfig(role="")


class TestAssistantSettings:
    """Test cases for AssistantSettings."""

    def test_defaults(self):
        settings = AssistantSettings()

        assert settings.agentic_enabled
        assert settings.default_allow_all_tools
        assert settings.merged_instructions() == settings.base_instructions

    def test_extra_instructions(self):
        settings = AssistantSettings(base_instructions="Base", extra_instructions="  Use tabs  ")
        assert settings.merged_instructions() == "Base\n\n# User Custom Instructions\nUse tabs"

    @pytest.mark.parametrize("field,value", [
        ("reasoning_effort", "extreme"),
        ("max_background_workers", 0),
        ("external_call_timeout_seconds", 0),
        ("unknown_option", True),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            AssistantSettings(**{field: value})

    def test_load(self, tmp_path):
        path = tmp_path / "settings.json"
        path.write_text('{"chat_model": "gpt-5", "agentic_enabled": false}')

        settings = AssistantSettings.load(path)

        assert settings.chat_model == "gpt-5"
        assert not settings.agentic_enabled


class TestExceptions:
    """Test cases for the exception hierarchy."""

    def test_default_code(self):
        error = TransportUnavailableError("refused", server_name="calc")

        assert error.server_name == "calc"
        assert error.error_code == "transport_unavailable"
        assert str(error) == "[transport_unavailable] refused"
        assert error.to_dict()["error_type"] == "TransportUnavailableError"

    def test_feature_disabled(self):
        error = FeatureDisabledError("Agentic mode is disabled in settings")
        assert "Agentic mode is disabled in settings" in str(error)

    def test_public_exceptions_are_the_raised_ones(self):
        import relaykit.assistant as assistant

        exported = {name for name in assistant.__all__ if name.endswith("Error")}

        assert exported == {
            "RelayError", "TransportUnavailableError", "DiscoveryFailedError",
            "ToolExecutionError", "UnknownTargetError", "FeatureDisabledError", "BackendError",
        }
