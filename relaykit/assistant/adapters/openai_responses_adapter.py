"""
OpenAI Responses API completion backend.

This module adapts ``openai.AsyncOpenAI().responses`` to the
``CompletionBackend`` interface. Conversation state lives on the server: the
continuation token is the previous response id, so each request only carries
the items that are new since the last one.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..core.exceptions import BackendError
from ..core.interfaces import CompletionBackend
from ..core.models import (
    CompletionResponse, FunctionCallOutputItem, InputItem, MessageItem, MessageOutput,
    OutputItem, ReasoningOutput, ToolCall, ToolDeclaration
)

logger = logging.getLogger(__name__)

REPLY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "summaryMessage": {
            "type": "string",
            "description": "General message summarizing the AI response.",
        },
        "ttsSummary": {
            "type": "string",
            "description": "Required audio summary suitable for TTS. This MUST be short, catchy and natural.",
        },
    },
    "required": ["summaryMessage", "ttsSummary"],
    "additionalProperties": False,
}


def _get(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def encode_input_item(item: InputItem) -> Dict[str, Any]:
    """Convert a conversation item to a Responses API input item."""
    if isinstance(item, FunctionCallOutputItem):
        return {
            "type": "function_call_output",
            "call_id": item.call_id,
            "output": json.dumps(item.output, default=str),
        }
    if isinstance(item, MessageItem):
        return {
            "type": "message",
            "role": str(item.role),
            "content": [{"type": "input_text", "text": item.text}],
        }
    raise TypeError(f"Unsupported input item: {type(item).__name__}")


def encode_tool(declaration: ToolDeclaration) -> Dict[str, Any]:
    return {
        "type": "function",
        "name": declaration.name,
        "description": declaration.description,
        "parameters": declaration.parameters,
        "strict": False,
    }


def parse_reply_text(text: str) -> MessageOutput:
    """Unpack a structured reply; plain text is passed through unchanged."""
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            payload = json.loads(stripped)
        except ValueError:
            payload = None
        if isinstance(payload, dict) and "summaryMessage" in payload:
            return MessageOutput(
                text=str(payload.get("summaryMessage") or ""),
                speech_text=payload.get("ttsSummary") or None,
            )
    return MessageOutput(text=text)


def parse_output(output: Sequence[Any]) -> List[OutputItem]:
    """Convert Responses API output items to backend-neutral output items."""
    items: List[OutputItem] = []
    for entry in output or []:
        kind = _get(entry, "type")
        if kind == "reasoning":
            summary = [
                _get(part, "text", "") for part in _get(entry, "summary", None) or []
                if _get(part, "text")
            ]
            items.append(ReasoningOutput(summary=summary))
        elif kind == "message":
            for part in _get(entry, "content", None) or []:
                if _get(part, "type") == "output_text":
                    items.append(parse_reply_text(_get(part, "text", "") or ""))
                elif _get(part, "type") == "refusal":
                    items.append(MessageOutput(text=_get(part, "refusal", "") or ""))
        elif kind == "function_call":
            arguments = _get(entry, "arguments", "{}")
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            items.append(ToolCall(
                call_id=_get(entry, "call_id"),
                name=_get(entry, "name"),
                arguments=arguments or "{}",
            ))
        else:
            logger.warning(f"Unknown output item type received: {kind}")
    return items


class OpenAIResponsesBackend(CompletionBackend):
    """Completion backend over the OpenAI Responses API."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        reasoning_effort: Optional[str] = "low",
        reasoning_summary: Optional[str] = "auto",
        max_output_tokens: Optional[int] = None,
        structured_replies: bool = True
    ):
        """Initialize the backend.

        Args:
            client: OpenAI client; by default one is built from the environment
            reasoning_effort: Effort hint, or None to omit reasoning settings
            reasoning_summary: Reasoning summary mode
            max_output_tokens: Output token cap per request
            structured_replies: Ask for a JSON reply carrying a display message
                and a short spoken summary
        """
        self._client = client or AsyncOpenAI()
        self._reasoning_effort = reasoning_effort
        self._reasoning_summary = reasoning_summary
        self._max_output_tokens = max_output_tokens
        self._structured_replies = structured_replies

    def build_request(
        self,
        instructions: str,
        input_items: Sequence[InputItem],
        continuation_token: Optional[str],
        model: str,
        tool_declarations: Sequence[ToolDeclaration]
    ) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "model": model,
            "instructions": instructions,
            "input": [encode_input_item(item) for item in input_items],
        }
        if tool_declarations:
            request["tools"] = [encode_tool(declaration) for declaration in tool_declarations]
        if continuation_token:
            request["previous_response_id"] = continuation_token
        if self._reasoning_effort:
            reasoning = {"effort": self._reasoning_effort}
            if self._reasoning_summary:
                reasoning["summary"] = self._reasoning_summary
            request["reasoning"] = reasoning
        if self._max_output_tokens:
            request["max_output_tokens"] = self._max_output_tokens
        if self._structured_replies:
            request["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": "Response",
                    "schema": REPLY_SCHEMA,
                    "strict": True,
                }
            }
        return request

    async def complete(
        self,
        instructions: str,
        input_items: Sequence[InputItem],
        continuation_token: Optional[str],
        model: str,
        tool_declarations: Sequence[ToolDeclaration]
    ) -> CompletionResponse:
        request = self.build_request(
            instructions, input_items, continuation_token, model, tool_declarations
        )
        logger.debug(
            f"responses.create model={model} items={len(request['input'])} "
            f"tools={len(request.get('tools', []))} previous={continuation_token}"
        )
        try:
            response = await self._client.responses.create(**request)
        except OpenAIError as e:
            raise BackendError(
                f"Completion request failed: {e}",
                context={"model": model, "previous_response_id": continuation_token},
            ) from e

        return CompletionResponse(
            output_items=parse_output(_get(response, "output", None) or []),
            continuation_token=_get(response, "id"),
        )
