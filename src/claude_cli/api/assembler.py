"""
Response assembler: builds the final MessageResponse from stream events
while forwarding every event to a wrapped handler.
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from .errors import APIEventError, StreamParseError
from .streaming import StreamHandler, _call
from .types import MessageDelta, MessageResponse, TextBlock, ThinkingBlock, ToolUseBlock, Usage

logger = structlog.get_logger()


class ResponseAssembler(StreamHandler):
    """Accumulates streaming events into a MessageResponse."""

    def __init__(self, handler: Any | None = None):
        self.handler = handler
        self.response: MessageResponse | None = None
        self.block_starts = 0
        self.api_errors: list[APIEventError] = []
        self._blocks: dict[int, Any] = {}
        self._json_buffers: dict[int, list[str]] = {}

    def on_message_start(self, message: MessageResponse) -> None:
        self.response = message.model_copy(update={"content": list(message.content)})
        _call(self.handler, "on_message_start", message)

    def on_content_block_start(self, index: int, block: Any) -> None:
        self.block_starts += 1
        self._blocks[index] = block.model_copy()
        if isinstance(block, ToolUseBlock):
            self._json_buffers[index] = []
        _call(self.handler, "on_content_block_start", index, block)

    def on_text_delta(self, index: int, text: str) -> None:
        block = self._blocks.get(index)
        if isinstance(block, TextBlock):
            block.text += text
        _call(self.handler, "on_text_delta", index, text)

    def on_thinking_delta(self, index: int, thinking: str) -> None:
        block = self._blocks.get(index)
        if isinstance(block, ThinkingBlock):
            block.thinking += thinking
        _call(self.handler, "on_thinking_delta", index, thinking)

    def on_signature_delta(self, index: int, signature: str) -> None:
        block = self._blocks.get(index)
        if isinstance(block, ThinkingBlock):
            block.signature += signature
        _call(self.handler, "on_signature_delta", index, signature)

    def on_input_json_delta(self, index: int, partial_json: str) -> None:
        buffer = self._json_buffers.get(index)
        if buffer is not None:
            buffer.append(partial_json)
        _call(self.handler, "on_input_json_delta", index, partial_json)

    def on_content_block_stop(self, index: int) -> None:
        block = self._blocks.get(index)

        buffer = self._json_buffers.pop(index, None)
        if buffer is not None and isinstance(block, ToolUseBlock):
            self._finalize_tool_input(index, block, "".join(buffer))

        if self.response is not None and block is not None:
            content = self.response.content
            # Out-of-order blocks leave empty placeholders until filled.
            while len(content) <= index:
                content.append(TextBlock(text=""))
            content[index] = block

        _call(self.handler, "on_content_block_stop", index)

    def _finalize_tool_input(self, index: int, block: ToolUseBlock, raw: str) -> None:
        block.raw_input = raw
        if not raw.strip():
            block.input = {}
            return
        try:
            block.input = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Invalid tool input JSON", index=index, tool_name=block.name, error=str(e))
            block.input = {}
            block.input_error = str(e)
            self.on_error(StreamParseError(f"invalid tool input JSON for block {index}: {e}"))

    def on_message_delta(self, delta: MessageDelta, usage: Usage | None) -> None:
        if self.response is not None:
            self.response.stop_reason = delta.stop_reason
            self.response.stop_sequence = delta.stop_sequence
            if usage is not None:
                self.response.usage.output_tokens = usage.output_tokens
        _call(self.handler, "on_message_delta", delta, usage)

    def on_message_stop(self) -> None:
        _call(self.handler, "on_message_stop")

    def on_error(self, error: Exception) -> None:
        if isinstance(error, APIEventError):
            self.api_errors.append(error)
        _call(self.handler, "on_error", error)
