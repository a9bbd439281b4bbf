"""
Reasoning engine adapter.

The orchestrator only depends on ``ReasoningEngine.complete``; the OpenAI
implementation works with any OpenAI-compatible chat-completions endpoint
(OpenAI, Gemini's compatibility layer, Ollama, vLLM) through ``base_url``.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import openai

from schemapilot.core.errors import EngineTimeout, ExternalFailure, ProtocolError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolCall:
    call_id: str
    name: str
    arguments: str  # Raw JSON text as produced by the engine


@dataclass(frozen=True)
class EngineReply:
    """Either a final text answer or exactly one proposed tool call."""
    text: Optional[str]
    tool_call: Optional[ToolCall]
    message: Dict[str, Any]  # Assistant message to append to the conversation

    @property
    def is_final(self) -> bool:
        return self.tool_call is None


class ReasoningEngine:
    def complete(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> EngineReply:
        raise NotImplementedError


class OpenAIReasoningEngine(ReasoningEngine):
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[Any] = None,
    ):
        self.model = model
        self.timeout = timeout
        if client is None:
            # Retries happen by continuing the orchestration loop, not inside the SDK
            kwargs: Dict[str, Any] = {
                "timeout": timeout,
                "max_retries": 0,
                "http_client": httpx.Client(timeout=httpx.Timeout(timeout)),
            }
            if api_key:
                kwargs["api_key"] = api_key
            if base_url:
                kwargs["base_url"] = base_url
            try:
                client = openai.OpenAI(**kwargs)
            except openai.OpenAIError as e:
                raise ExternalFailure(f"Could not create reasoning engine client: {e}") from e
        self._client = client

    def complete(self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]) -> EngineReply:
        kwargs: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            kwargs["tools"] = tools
            kwargs["parallel_tool_calls"] = False
        try:
            response = self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as e:
            raise EngineTimeout(f"Reasoning engine timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            raise ExternalFailure(f"Reasoning engine error: {e}") from e
        return parse_response(response)


def parse_response(response: Any) -> EngineReply:
    """Reduce a chat-completions response to text or a single tool call."""
    choices = getattr(response, "choices", None) or []
    if not choices:
        raise ProtocolError("Reasoning engine returned no choices")
    message = choices[0].message
    text = (message.content or "").strip() or None
    tool_calls = list(message.tool_calls or [])

    if len(tool_calls) > 1:
        raise ProtocolError(f"Reasoning engine proposed {len(tool_calls)} tool calls; exactly one is allowed per step")
    if not tool_calls:
        if text is None:
            raise ProtocolError("Reasoning engine returned neither text nor a tool call")
        return EngineReply(text=text, tool_call=None, message={"role": "assistant", "content": text})

    raw = tool_calls[0]
    function = getattr(raw, "function", None)
    if function is None or not getattr(function, "name", None):
        raise ProtocolError("Reasoning engine proposed a tool call without a function name")
    call = ToolCall(call_id=raw.id, name=function.name, arguments=function.arguments or "{}")
    log.debug("Engine proposed %s(%s)", call.name, call.arguments)
    return EngineReply(
        text=text,
        tool_call=call,
        message={
            "role": "assistant",
            "content": text,
            "tool_calls": [
                {
                    "id": call.call_id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
            ],
        },
    )
