"""
Shared fixtures: a scripted Messages API backend on httpx.MockTransport.
"""

import json
import os
from typing import Any
from unittest.mock import patch

import httpx
import pytest

from claude_cli.agent.system_prompt import reset_registry
from claude_cli.api.auth import StaticTokenSource
from claude_cli.api.client import MessagesClient
from claude_cli.api.types import MessageResponse, TextBlock, ToolUseBlock, Usage
from claude_cli.config import Settings, reset_settings

TEXT_CHUNK = 50
JSON_CHUNK = 80


def sse_event(event: str, data: dict[str, Any]) -> bytes:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n".encode()


def response_to_sse(resp: MessageResponse) -> bytes:
    """Serialize a complete response into the event sequence the API streams."""
    shell = {
        "id": resp.id,
        "type": "message",
        "role": "assistant",
        "content": [],
        "model": resp.model,
        "usage": {"input_tokens": resp.usage.input_tokens, "output_tokens": 0},
    }
    out = [sse_event("message_start", {"type": "message_start", "message": shell})]

    for index, block in enumerate(resp.content):
        if isinstance(block, TextBlock):
            out.append(sse_event("content_block_start", {
                "type": "content_block_start", "index": index,
                "content_block": {"type": "text", "text": ""},
            }))
            text = block.text
            for i in range(0, len(text), TEXT_CHUNK):
                out.append(sse_event("content_block_delta", {
                    "type": "content_block_delta", "index": index,
                    "delta": {"type": "text_delta", "text": text[i:i + TEXT_CHUNK]},
                }))
        elif isinstance(block, ToolUseBlock):
            out.append(sse_event("content_block_start", {
                "type": "content_block_start", "index": index,
                "content_block": {"type": "tool_use", "id": block.id, "name": block.name, "input": {}},
            }))
            raw = json.dumps(block.input)
            for i in range(0, len(raw), JSON_CHUNK):
                out.append(sse_event("content_block_delta", {
                    "type": "content_block_delta", "index": index,
                    "delta": {"type": "input_json_delta", "partial_json": raw[i:i + JSON_CHUNK]},
                }))
        out.append(sse_event("content_block_stop", {"type": "content_block_stop", "index": index}))

    out.append(sse_event("message_delta", {
        "type": "message_delta",
        "delta": {"stop_reason": resp.stop_reason, "stop_sequence": resp.stop_sequence},
        "usage": {"output_tokens": resp.usage.output_tokens},
    }))
    out.append(sse_event("message_stop", {"type": "message_stop"}))
    return b"".join(out)


def text_response(text: str, input_tokens: int = 10, output_tokens: int = 5) -> MessageResponse:
    return MessageResponse(
        id="msg_text",
        model="claude-sonnet-4-6",
        content=[TextBlock(text=text)],
        stop_reason="end_turn",
        usage=Usage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def tool_use_response(*calls: tuple[str, str, dict], input_tokens: int = 10) -> MessageResponse:
    return MessageResponse(
        id="msg_tool",
        model="claude-sonnet-4-6",
        content=[ToolUseBlock(id=cid, name=name, input=args) for cid, name, args in calls],
        stop_reason="tool_use",
        usage=Usage(input_tokens=input_tokens, output_tokens=5),
    )


class MockBackend:
    """Replays scripted responses and records every request it receives."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._script: list[httpx.Response] = []

    def add_response(self, resp: MessageResponse) -> None:
        self.add_raw(response_to_sse(resp))

    def add_raw(self, body: bytes) -> None:
        self._script.append(
            httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})
        )

    def add_json(self, resp: MessageResponse) -> None:
        self._script.append(httpx.Response(200, json=resp.to_wire()))

    def add_status(self, status_code: int, body: str = "") -> None:
        self._script.append(httpx.Response(status_code, text=body))

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._script:
            return httpx.Response(500, text="no scripted response")
        return self._script.pop(0)

    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    def client(self, token_source=None, **kwargs: Any) -> MessagesClient:
        kwargs.setdefault("base_url", "https://api.test")
        kwargs.setdefault("version", "test")
        return MessagesClient(
            token_source or StaticTokenSource("test-token"),
            http_client=self.http_client(),
            **kwargs,
        )


@pytest.fixture
def backend() -> MockBackend:
    return MockBackend()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's environment and .env file."""
    with patch.dict(os.environ, {}, clear=True):
        return Settings(_env_file=None)


@pytest.fixture(autouse=True)
def _reset_globals():
    reset_settings()
    reset_registry()
    yield
    reset_settings()
    reset_registry()


@pytest.fixture(autouse=True, scope="session")
def _configure_logging():
    """Route structlog to stderr as main() does, keeping stdout clean for output checks."""
    from claude_cli.cli import configure_logging

    configure_logging()
