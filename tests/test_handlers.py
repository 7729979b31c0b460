"""
Tests for terminal stream handlers.
"""

import io
import json

import pytest

from claude_cli.agent.handlers import (
    JSONStreamHandler,
    PrintStreamHandler,
    StreamJSONStreamHandler,
    ToolAwareStreamHandler,
    format_error_line,
    tool_input_summary,
)
from claude_cli.api.errors import APIEventError
from claude_cli.api.streaming import parse_sse_stream

from conftest import response_to_sse, text_response, tool_use_response


async def replay(data: bytes, handler) -> None:
    async def chunks():
        yield data

    await parse_sse_stream(chunks(), handler)


@pytest.mark.asyncio
async def test_print_handler_writes_text():
    """Test that text deltas are printed followed by a newline."""
    out = io.StringIO()
    await replay(response_to_sse(text_response("Hello there")), PrintStreamHandler(out, io.StringIO()))

    assert out.getvalue() == "Hello there\n"


def test_print_handler_errors_go_to_stderr():
    """Test that stream errors are written to the error stream."""
    out, err = io.StringIO(), io.StringIO()
    PrintStreamHandler(out, err).on_error(APIEventError("overloaded_error", "Overloaded"))

    assert out.getvalue() == ""
    assert "Stream error" in err.getvalue()


@pytest.mark.asyncio
async def test_tool_aware_handler_prints_summary():
    """Test the one-line tool call summary."""
    out = io.StringIO()
    data = response_to_sse(tool_use_response(("toolu_1", "Bash", {"command": "git status"})))
    await replay(data, ToolAwareStreamHandler(out, io.StringIO()))

    assert "[tool: Bash] $ git status" in out.getvalue()


def test_tool_input_summary():
    """Test summaries for common tool inputs."""
    assert tool_input_summary("Grep", {"pattern": "TODO"}) == "/TODO/"
    assert tool_input_summary("Read", {"file_path": "/etc/hosts"}) == "/etc/hosts"
    assert tool_input_summary("Bash", {"command": "x" * 300}).endswith("...")
    assert tool_input_summary("Other", {}) == ""
    assert tool_input_summary("Other", "not a dict") == ""


@pytest.mark.asyncio
async def test_json_handler_writes_one_object():
    """Test the json output format."""
    out = io.StringIO()
    await replay(response_to_sse(text_response("Hi", input_tokens=12, output_tokens=3)), JSONStreamHandler(out))

    lines = out.getvalue().splitlines()
    assert len(lines) == 1
    message = json.loads(lines[0])
    assert message == {
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": "Hi"}],
        "model": "claude-sonnet-4-6",
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 12, "output_tokens": 3},
    }


@pytest.mark.asyncio
async def test_json_handler_includes_tool_input():
    """Test that tool calls appear with their decoded input."""
    out = io.StringIO()
    data = response_to_sse(tool_use_response(("toolu_1", "Read", {"file_path": "a.py"})))
    await replay(data, JSONStreamHandler(out))

    message = json.loads(out.getvalue())
    assert message["content"] == [
        {"type": "tool_use", "id": "toolu_1", "name": "Read", "input": {"file_path": "a.py"}},
    ]
    assert message["stop_reason"] == "tool_use"


@pytest.mark.asyncio
async def test_stream_json_handler_emits_each_event():
    """Test the stream-json output format."""
    out = io.StringIO()
    await replay(response_to_sse(text_response("Hi")), StreamJSONStreamHandler(out))

    events = [json.loads(line) for line in out.getvalue().splitlines()]
    assert [e["type"] for e in events] == [
        "message_start",
        "content_block_start",
        "text_delta",
        "content_block_stop",
        "message_delta",
        "message_stop",
    ]
    assert events[2] == {"type": "text_delta", "index": 0, "text": "Hi"}
    assert events[4]["delta"] == {"stop_reason": "end_turn"}
    assert events[4]["usage"]["output_tokens"] == 5


def test_error_line_format():
    """Test the JSON error line."""
    assert json.loads(format_error_line("boom")) == {"type": "error", "error": "boom"}

    out = io.StringIO()
    StreamJSONStreamHandler(out).on_error(APIEventError("overloaded_error", "Overloaded"))
    assert json.loads(out.getvalue())["type"] == "error"
