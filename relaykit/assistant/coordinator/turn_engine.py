"""
Conversation turn engine.

This module drives one logical exchange with the completion backend: submit
the pending items with the tool declarations, interpret the output, execute
requested function calls through the tool router and loop until the backend
stops asking for tools. The primary session and every sub-agent use the same
engine; they differ only in labels, visibility and speech.
"""

import logging
from typing import Callable, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import TurnState
from ..core.interfaces import CompletionBackend, DisplaySink, LoggingDisplaySink, SpeechSink
from ..core.models import (
    ConversationState, FunctionCallOutputItem, InputItem, MessageOutput,
    ReasoningOutput, ToolCall, ToolVisibility, TurnOutcome
)
from ..registry.tool_registry import ToolRuntime
from ..tools.declarations import ToolDeclarationBuilder
from ..tools.external_tool_manager import ExternalToolManager
from ..tools.router import ToolRouter

logger = logging.getLogger(__name__)


class TurnRequest(BaseModel):
    """Everything the engine needs to run one logical turn."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: ConversationState = Field(..., description="Pending items and resume token")
    instructions: str = Field(..., description="System instructions")
    model: str = Field(..., description="Model identifier", min_length=1)
    visibility: ToolVisibility = Field(
        default_factory=ToolVisibility.allow_all,
        description="Static tool visibility"
    )
    visibility_provider: Optional[Callable[[], ToolVisibility]] = Field(
        None, description="Called before every backend request; overrides visibility"
    )
    label: str = Field(default="AI", description="Display label for assistant text")
    reasoning_label: str = Field(default="Reasoning", description="Display label for reasoning")
    speak: bool = Field(default=False, description="Send the first message of the turn to speech")
    scope_selection: bool = Field(
        default=True, description="Let tools change the primary session's tool scope"
    )


class ConversationTurnEngine:
    """Runs the tool-calling loop against a completion backend.

    States per logical turn: AWAITING_RESPONSE, PROCESSING_OUTPUT, then
    EXECUTING_TOOLS and back to AWAITING_RESPONSE while the backend requests
    tools, and finally DONE.
    """

    def __init__(
        self,
        backend: CompletionBackend,
        router: ToolRouter,
        declaration_builder: ToolDeclarationBuilder,
        runtime: ToolRuntime,
        external_tools: Optional[ExternalToolManager] = None,
        display: Optional[DisplaySink] = None,
        speech: Optional[SpeechSink] = None
    ):
        self._backend = backend
        self._router = router
        self._declarations = declaration_builder
        self._runtime = runtime
        self._external_tools = external_tools
        self._display = display or LoggingDisplaySink()
        self._speech = speech

    def _post(self, label: str, text: str) -> None:
        try:
            self._display.post(label, text)
        except Exception as e:
            logger.debug(f"Display post failed: {e}")

    async def _speak(self, text: str) -> None:
        if self._speech is None:
            return
        try:
            await self._speech.speak(text)
        except Exception as e:
            logger.debug(f"Speech failed, ignoring: {e}")

    async def run(self, request: TurnRequest) -> TurnOutcome:
        """
        Drive a logical turn to completion.

        Args:
            request: Pending items, resume token, instructions and tool policy

        Returns:
            Accumulated assistant text, final continuation token and counters

        Raises:
            Exception: Whatever the completion backend raises; cancellation
                propagates unchanged
        """
        runtime = self._runtime if request.scope_selection else self._runtime.without_scope()
        items: List[InputItem] = list(request.state.items)
        token = request.state.continuation_token
        seen_call_ids: Set[str] = set()
        text_parts: List[str] = []
        spoken = False
        rounds = 0
        tool_calls = 0

        while True:
            state = TurnState.AWAITING_RESPONSE
            visibility = (
                request.visibility_provider() if request.visibility_provider is not None
                else request.visibility
            )
            tools_by_server = (
                self._external_tools.tools_by_server() if self._external_tools is not None else {}
            )
            declarations = self._declarations.build(
                runtime.environment, visibility, tools_by_server
            )

            logger.debug(f"[{request.label}] {state}: round {rounds + 1}, {len(items)} items")
            response = await self._backend.complete(
                request.instructions, items, token, request.model, declarations
            )
            rounds += 1
            if response.continuation_token is not None:
                token = response.continuation_token

            state = TurnState.PROCESSING_OUTPUT
            pending: List[ToolCall] = []
            for output in response.output_items:
                if isinstance(output, ReasoningOutput):
                    summary = "\n".join(part for part in output.summary if part)
                    if summary:
                        self._post(request.reasoning_label, summary)
                elif isinstance(output, MessageOutput):
                    if output.text:
                        self._post(request.label, output.text)
                        text_parts.append(output.text)
                    speech = output.speech_text or output.text
                    if request.speak and not spoken and speech:
                        spoken = True
                        await self._speak(speech)
                elif isinstance(output, ToolCall):
                    if output.call_id in seen_call_ids:
                        logger.debug(f"Skipping duplicate function call {output.call_id}")
                        continue
                    seen_call_ids.add(output.call_id)
                    self._post(request.label, f"Calling tool: {output.name}")
                    pending.append(output)

            if not pending:
                state = TurnState.DONE
                logger.debug(f"[{request.label}] {state} after {rounds} rounds")
                break

            state = TurnState.EXECUTING_TOOLS
            logger.debug(f"[{request.label}] {state}: {len(pending)} calls")
            items = []
            for call in pending:
                payload = await self._router.route(call, runtime)
                items.append(FunctionCallOutputItem(call_id=call.call_id, output=payload))
                tool_calls += 1

        return TurnOutcome(
            text="\n".join(text_parts).strip(),
            continuation_token=token,
            rounds=rounds,
            tool_calls=tool_calls,
        )
