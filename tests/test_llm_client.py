"""Tests for the OpenAI reasoning engine adapter (no network calls)."""
from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import openai
import pytest

from schemapilot.core.errors import EngineTimeout, ExternalFailure, ProtocolError
from schemapilot.core.llm import OpenAIReasoningEngine, parse_response


def _tool_call(call_id, name, arguments):
    return SimpleNamespace(id=call_id, type="function", function=SimpleNamespace(name=name, arguments=arguments))


def _response(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _engine(client):
    return OpenAIReasoningEngine(model="gpt-4o-mini", client=client, timeout=10)


def test_final_text_answer():
    reply = parse_response(_response(content="All done."))
    assert reply.is_final
    assert reply.text == "All done."
    assert reply.message == {"role": "assistant", "content": "All done."}


def test_single_tool_call():
    reply = parse_response(_response(tool_calls=[_tool_call("call_1", "create_schema", '{"name": "songs"}')]))
    assert not reply.is_final
    assert reply.tool_call.call_id == "call_1"
    assert reply.tool_call.name == "create_schema"
    assert reply.tool_call.arguments == '{"name": "songs"}'
    assert reply.message["tool_calls"][0]["function"]["name"] == "create_schema"


def test_responses_outside_the_protocol():
    with pytest.raises(ProtocolError):
        parse_response(SimpleNamespace(choices=[]))
    with pytest.raises(ProtocolError):
        parse_response(_response(content="   "))
    with pytest.raises(ProtocolError):
        parse_response(_response(tool_calls=[
            _tool_call("a", "read_file", "{}"),
            _tool_call("b", "list_files", "{}"),
        ]))


def test_complete_sends_messages_and_tools():
    client = MagicMock()
    client.chat.completions.create.return_value = _response(content="ok")
    tools = [{"type": "function", "function": {"name": "read_file", "parameters": {}}}]

    reply = _engine(client).complete([{"role": "user", "content": "hi"}], tools)

    assert reply.text == "ok"
    client.chat.completions.create.assert_called_once_with(
        model="gpt-4o-mini",
        messages=[{"role": "user", "content": "hi"}],
        tools=tools,
        parallel_tool_calls=False,
    )


def test_sdk_errors_are_mapped():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

    client = MagicMock()
    client.chat.completions.create.side_effect = openai.APITimeoutError(request=request)
    with pytest.raises(EngineTimeout):
        _engine(client).complete([], [])

    client.chat.completions.create.side_effect = openai.APIConnectionError(request=request)
    with pytest.raises(ExternalFailure) as exc_info:
        _engine(client).complete([], [])
    assert not isinstance(exc_info.value, EngineTimeout)
