"""
Server-sent event parsing for the streaming Messages API.

The parser is push-based: bytes are fed in as they arrive from the
transport, frames are decoded as soon as their terminating blank line is
seen, and the handler is called inline. Handlers therefore observe events
in transport order without any extra synchronisation.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable
from typing import Any

import structlog
from pydantic import TypeAdapter, ValidationError

from .errors import APIEventError, StreamParseError
from .types import APIErrorPayload, ContentBlock, MessageDelta, MessageResponse, Usage

logger = structlog.get_logger()

EVENT_MESSAGE_START = "message_start"
EVENT_CONTENT_BLOCK_START = "content_block_start"
EVENT_CONTENT_BLOCK_DELTA = "content_block_delta"
EVENT_CONTENT_BLOCK_STOP = "content_block_stop"
EVENT_MESSAGE_DELTA = "message_delta"
EVENT_MESSAGE_STOP = "message_stop"
EVENT_PING = "ping"
EVENT_ERROR = "error"

# Large tool inputs arrive as single data lines.
MAX_LINE_BYTES = 16 * 1024 * 1024

_content_block_adapter: TypeAdapter[Any] = TypeAdapter(ContentBlock)


class StreamHandler:
    """Receives streaming events. Every callback defaults to a no-op.

    The parser also accepts handlers that do not derive from this class and
    lack some of the callbacks; events for missing callbacks are dropped.
    """

    def on_message_start(self, message: MessageResponse) -> None:
        pass

    def on_content_block_start(self, index: int, block: Any) -> None:
        pass

    def on_text_delta(self, index: int, text: str) -> None:
        pass

    def on_thinking_delta(self, index: int, thinking: str) -> None:
        pass

    def on_signature_delta(self, index: int, signature: str) -> None:
        pass

    def on_input_json_delta(self, index: int, partial_json: str) -> None:
        pass

    def on_content_block_stop(self, index: int) -> None:
        pass

    def on_message_delta(self, delta: MessageDelta, usage: Usage | None) -> None:
        pass

    def on_message_stop(self) -> None:
        pass

    def on_error(self, error: Exception) -> None:
        pass


class NoOpStreamHandler(StreamHandler):
    """Discards every event."""


def _call(handler: Any, method: str, *args: Any) -> None:
    callback = getattr(handler, method, None)
    if callback is not None:
        callback(*args)


class SSEParser:
    """Incremental SSE decoder that dispatches typed events to a handler."""

    def __init__(self, handler: Any, max_line_bytes: int = MAX_LINE_BYTES):
        self.handler = handler
        self.max_line_bytes = max_line_bytes
        self._buffer = bytearray()
        self._event_type = ""
        self._data_lines: list[str] = []

    def feed(self, chunk: bytes) -> None:
        """Consume a chunk of the byte stream."""
        self._buffer.extend(chunk)
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            self._process_line(raw)
        if len(self._buffer) > self.max_line_bytes:
            raise StreamParseError(f"SSE line exceeds {self.max_line_bytes} bytes")

    def close(self) -> None:
        """Signal EOF. A trailing unterminated line is still processed."""
        if self._buffer:
            raw = bytes(self._buffer)
            self._buffer.clear()
            self._process_line(raw)

    def _process_line(self, raw: bytes) -> None:
        line = raw.rstrip(b"\r").decode("utf-8", errors="replace")

        if line == "":
            if self._event_type and self._data_lines:
                self._dispatch(self._event_type, "\n".join(self._data_lines))
            self._event_type = ""
            self._data_lines = []
            return

        if line.startswith(":"):
            return
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            self._event_type = value
        elif field == "data":
            self._data_lines.append(value)

    def _dispatch(self, event_type: str, data: str) -> None:
        if event_type == EVENT_PING:
            return

        if event_type == EVENT_ERROR:
            self._dispatch_error(data)
            return

        try:
            decoded = self._decode(event_type, data)
        except (ValueError, ValidationError, KeyError, TypeError) as e:
            logger.warning("Dropping malformed SSE frame", event_type=event_type, error=str(e))
            _call(
                self.handler,
                "on_error",
                StreamParseError(f"dispatching event {event_type}: {e}"),
            )
            return

        if decoded is None:
            return
        method, args = decoded
        _call(self.handler, method, *args)

    def _decode(self, event_type: str, data: str) -> tuple[str, tuple[Any, ...]] | None:
        """Decode one frame into a handler method name and its arguments."""
        if event_type == EVENT_MESSAGE_STOP:
            return "on_message_stop", ()

        if event_type not in (
            EVENT_MESSAGE_START,
            EVENT_CONTENT_BLOCK_START,
            EVENT_CONTENT_BLOCK_DELTA,
            EVENT_CONTENT_BLOCK_STOP,
            EVENT_MESSAGE_DELTA,
        ):
            # Unknown event types are ignored per the SSE convention.
            return None

        payload = json.loads(data)

        if event_type == EVENT_MESSAGE_START:
            return "on_message_start", (MessageResponse.model_validate(payload["message"]),)

        if event_type == EVENT_CONTENT_BLOCK_START:
            block = _content_block_adapter.validate_python(payload["content_block"])
            return "on_content_block_start", (int(payload["index"]), block)

        if event_type == EVENT_CONTENT_BLOCK_DELTA:
            index = int(payload["index"])
            delta = payload["delta"]
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return "on_text_delta", (index, delta.get("text", ""))
            if delta_type == "thinking_delta":
                return "on_thinking_delta", (index, delta.get("thinking", ""))
            if delta_type == "signature_delta":
                return "on_signature_delta", (index, delta.get("signature", ""))
            if delta_type == "input_json_delta":
                return "on_input_json_delta", (index, delta.get("partial_json", ""))
            return None

        if event_type == EVENT_CONTENT_BLOCK_STOP:
            return "on_content_block_stop", (int(payload["index"]),)

        # message_delta
        delta = MessageDelta.model_validate(payload.get("delta") or {})
        usage_raw = payload.get("usage")
        usage = Usage.model_validate(usage_raw) if usage_raw is not None else None
        return "on_message_delta", (delta, usage)

    def _dispatch_error(self, data: str) -> None:
        try:
            payload = APIErrorPayload.model_validate_json(data)
            error = APIEventError(payload.error.type, payload.error.message)
        except ValidationError:
            error = APIEventError("unparseable", data)
        logger.warning("API error event in stream", error=str(error))
        _call(self.handler, "on_error", error)


async def parse_sse_stream(chunks: AsyncIterable[bytes], handler: Any) -> None:
    """Read an SSE byte stream to EOF, dispatching events to ``handler``.

    Per-frame decode problems are reported through ``handler.on_error`` and
    parsing continues. Errors raised by the byte source propagate.
    """
    parser = SSEParser(handler)
    async for chunk in chunks:
        parser.feed(chunk)
    parser.close()
