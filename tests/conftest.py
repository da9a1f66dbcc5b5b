"""
Pytest configuration and shared fixtures.

This module provides fake collaborators (completion backend, external
connections, display) and common fixtures for all tests.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import pytest

from relaykit.assistant.builtin import register_default_tools
from relaykit.assistant.coordinator.turn_engine import ConversationTurnEngine
from relaykit.assistant.core.exceptions import ToolExecutionError, TransportUnavailableError
from relaykit.assistant.core.interfaces import CompletionBackend, DisplaySink, SpeechSink
from relaykit.assistant.core.models import (
    AssistantSettings, CompletionResponse, ExternalServerConfig, InputItem,
    MessageOutput, ToolCall, ToolDeclaration, ToolSchema
)
from relaykit.assistant.registry.environment import ProjectEnvironment
from relaykit.assistant.registry.tool_registry import BuiltInToolRegistry, ToolRuntime
from relaykit.assistant.tools.connection import ExternalConnection
from relaykit.assistant.tools.declarations import ToolDeclarationBuilder
from relaykit.assistant.tools.external_tool_manager import ExternalToolManager
from relaykit.assistant.tools.name_mapper import ToolNameMapper
from relaykit.assistant.tools.router import BuiltInToolInvoker, ToolRouter
from relaykit.assistant.tools.scope import ToolScopeSelector


def make_tool(
    server: str,
    name: str,
    properties: Optional[Dict[str, Dict[str, Any]]] = None,
    required: Optional[List[str]] = None,
    description: str = ""
) -> ToolSchema:
    return ToolSchema(
        server=server,
        name=name,
        description=description,
        properties=properties or {},
        required=required or [],
    )


def message(text: str, speech_text: Optional[str] = None) -> MessageOutput:
    return MessageOutput(text=text, speech_text=speech_text)


def call(call_id: str, name: str, arguments: str = "{}") -> ToolCall:
    return ToolCall(call_id=call_id, name=name, arguments=arguments)


class RecordingDisplay(DisplaySink):
    """Display sink that remembers every post."""

    def __init__(self):
        self.posts: List[Tuple[str, str]] = []

    def post(self, label: str, text: str) -> None:
        self.posts.append((label, text))

    def texts(self, label: str) -> List[str]:
        return [text for posted_label, text in self.posts if posted_label == label]


class RecordingSpeech(SpeechSink):
    def __init__(self, fail: bool = False):
        self.spoken: List[str] = []
        self.fail = fail

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.fail:
            raise RuntimeError("speaker unplugged")


class BackendRequest:
    """One recorded call to the scripted backend."""

    def __init__(self, instructions, input_items, continuation_token, model, tool_declarations):
        self.instructions: str = instructions
        self.input_items: List[InputItem] = list(input_items)
        self.continuation_token: Optional[str] = continuation_token
        self.model: str = model
        self.tool_declarations: List[ToolDeclaration] = list(tool_declarations)

    @property
    def tool_names(self) -> List[str]:
        return [declaration.name for declaration in self.tool_declarations]


ScriptStep = Union[CompletionResponse, Exception, Callable[[BackendRequest], Any]]


class ScriptedBackend(CompletionBackend):
    """Completion backend replaying scripted responses in order.

    A step may be a response, an exception to raise, or a callable receiving
    the request (sync or async) and returning a response. Once the script is
    exhausted every request gets a plain "done" message.
    """

    def __init__(self, steps: Optional[Sequence[ScriptStep]] = None, token_prefix: str = "resp"):
        self.steps: List[ScriptStep] = list(steps or [])
        self.requests: List[BackendRequest] = []
        self._token_prefix = token_prefix

    def add(self, *steps: ScriptStep) -> "ScriptedBackend":
        self.steps.extend(steps)
        return self

    async def complete(self, instructions, input_items, continuation_token, model, tool_declarations):
        request = BackendRequest(instructions, input_items, continuation_token, model, tool_declarations)
        self.requests.append(request)
        token = f"{self._token_prefix}-{len(self.requests)}"

        if not self.steps:
            return CompletionResponse(output_items=[message("done")], continuation_token=token)

        step = self.steps.pop(0)
        if isinstance(step, Exception):
            raise step
        if callable(step):
            step = step(request)
            if asyncio.iscoroutine(step):
                step = await step
        if step.continuation_token is None:
            step = step.model_copy(update={"continuation_token": token})
        return step


class FakeConnection(ExternalConnection):
    """In-process stand-in for a live MCP connection."""

    def __init__(
        self,
        server_name: str,
        tools: Optional[List[ToolSchema]] = None,
        responses: Optional[Dict[str, Any]] = None,
        fail_connect: bool = False,
        delay: float = 0.0
    ):
        self.server_name = server_name
        self.tools = list(tools or [])
        self.responses = dict(responses or {})
        self.fail_connect = fail_connect
        self.list_tools_error: Optional[Exception] = None
        self.delay = delay
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        if self.fail_connect:
            raise TransportUnavailableError("connection refused", server_name=self.server_name)
        self.connected = True

    async def list_tools(self) -> List[ToolSchema]:
        if self.list_tools_error is not None:
            raise self.list_tools_error
        return list(self.tools)

    async def call_tool(self, method: str, arguments: Dict[str, Any]) -> str:
        self.calls.append((method, dict(arguments)))
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.get(method, f"{method} ok")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(arguments)
        return response

    async def close(self) -> None:
        self.connected = False
        self.closed = True

    @property
    def is_connected(self) -> bool:
        return self.connected


class FakeConnectionFactory:
    """Connection factory handing out FakeConnections built from per-server specs."""

    def __init__(self):
        self.specs: Dict[str, Dict[str, Any]] = {}
        self.created: List[FakeConnection] = []

    def define(self, server: str, **spec: Any) -> None:
        self.specs[server] = spec

    def __call__(self, name: str, config: ExternalServerConfig) -> FakeConnection:
        spec = self.specs.get(name, {})
        connection = FakeConnection(
            name,
            tools=spec.get("tools"),
            responses=spec.get("responses"),
            fail_connect=spec.get("fail_connect", False),
            delay=spec.get("delay", 0.0),
        )
        self.created.append(connection)
        return connection

    def for_server(self, name: str) -> List[FakeConnection]:
        return [connection for connection in self.created if connection.server_name == name]

    def latest(self, name: str) -> Optional[FakeConnection]:
        connections = self.for_server(name)
        return connections[-1] if connections else None


def server_config(command: str = "python", *args: str, **kwargs: Any) -> ExternalServerConfig:
    return ExternalServerConfig(command=command, args=list(args), **kwargs)


@pytest.fixture
def settings() -> AssistantSettings:
    """Settings with short timeouts for tests."""
    return AssistantSettings(
        external_call_timeout_seconds=5.0,
        connect_timeout_seconds=2.0,
        request_timeout_seconds=5.0,
        max_background_workers=2,
    )


@pytest.fixture
def display() -> RecordingDisplay:
    return RecordingDisplay()


@pytest.fixture
def connection_factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
async def external_tools(settings, display, connection_factory):
    """External tool manager backed by fake connections."""
    manager = ExternalToolManager(
        display=display,
        settings=settings,
        connection_factory=connection_factory,
    )
    yield manager
    await manager.shutdown()


@pytest.fixture
def registry() -> BuiltInToolRegistry:
    return register_default_tools(BuiltInToolRegistry())


@pytest.fixture
def environment() -> ProjectEnvironment:
    return ProjectEnvironment()


@pytest.fixture
def scope_selector() -> ToolScopeSelector:
    return ToolScopeSelector(default_allow_all=True)


@pytest.fixture
def runtime(registry, environment, external_tools, scope_selector, display) -> ToolRuntime:
    return ToolRuntime(
        registry=registry,
        environment=environment,
        external_tools=external_tools,
        scope_selector=scope_selector,
        display=display,
    )


@pytest.fixture
def mapper() -> ToolNameMapper:
    return ToolNameMapper()


@pytest.fixture
def router(registry, mapper, external_tools, display) -> ToolRouter:
    return ToolRouter(BuiltInToolInvoker(registry), mapper, external_tools, display)


@pytest.fixture
def backend() -> ScriptedBackend:
    return ScriptedBackend()


@pytest.fixture
def speech() -> RecordingSpeech:
    return RecordingSpeech()


@pytest.fixture
def engine(backend, router, registry, mapper, runtime, external_tools, display, speech):
    return ConversationTurnEngine(
        backend=backend,
        router=router,
        declaration_builder=ToolDeclarationBuilder(registry, mapper),
        runtime=runtime,
        external_tools=external_tools,
        display=display,
        speech=speech,
    )
