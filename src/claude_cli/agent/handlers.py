"""
Stream handlers for terminal output.

- PrintStreamHandler: plain text to stdout
- ToolAwareStreamHandler: text plus a one-line summary per tool call
- JSONStreamHandler: one JSON object per message (``--output-format json``)
- StreamJSONStreamHandler: one JSON line per event (``--output-format stream-json``)
"""

import json
import sys
from typing import Any, TextIO

from ..api.streaming import StreamHandler
from ..api.types import MessageDelta, MessageResponse, TextBlock, ToolUseBlock, Usage


def format_error_line(error: BaseException | str) -> str:
    """Serialized error object for the JSON output modes."""
    return json.dumps({"type": "error", "error": str(error)})


class PrintStreamHandler(StreamHandler):
    """Writes text deltas as they arrive."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        self.out = out or sys.stdout
        self.err = err or sys.stderr

    def on_text_delta(self, index: int, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def on_message_stop(self) -> None:
        self.out.write("\n")
        self.out.flush()

    def on_error(self, error: Exception) -> None:
        self.err.write(f"\nStream error: {error}\n")


def tool_input_summary(name: str, tool_input: Any) -> str:
    """Short description of a tool call for display."""
    if not isinstance(tool_input, dict):
        return ""

    if name == "Bash" and (command := tool_input.get("command")):
        command = str(command)
        if len(command) > 200:
            command = command[:197] + "..."
        return f"$ {command}"
    if name == "Grep" and (pattern := tool_input.get("pattern")):
        return f"/{pattern}/"
    for key in ("file_path", "pattern", "url", "description"):
        if value := tool_input.get(key):
            return str(value)
    return ""


class ToolAwareStreamHandler(PrintStreamHandler):
    """Like PrintStreamHandler, and prints ``[tool: name] summary`` when a tool call completes."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None):
        super().__init__(out, err)
        self._tool_names: dict[int, str] = {}
        self._json_buffers: dict[int, list[str]] = {}

    def on_content_block_start(self, index: int, block: Any) -> None:
        if isinstance(block, ToolUseBlock):
            self._tool_names[index] = block.name
            self._json_buffers[index] = []

    def on_input_json_delta(self, index: int, partial_json: str) -> None:
        if index in self._json_buffers:
            self._json_buffers[index].append(partial_json)

    def on_content_block_stop(self, index: int) -> None:
        name = self._tool_names.pop(index, None)
        if name is None:
            return
        raw = "".join(self._json_buffers.pop(index, []))
        try:
            tool_input = json.loads(raw) if raw else {}
        except json.JSONDecodeError:
            tool_input = {}
        line = f"\n[tool: {name}]"
        if summary := tool_input_summary(name, tool_input):
            line += f" {summary}"
        self.out.write(line + "\n")
        self.out.flush()


class JSONStreamHandler(StreamHandler):
    """Collects a message and writes it as one JSON object on ``message_stop``."""

    def __init__(self, out: TextIO | None = None):
        self.out = out or sys.stdout
        self._reset()

    def _reset(self) -> None:
        self.model = ""
        self.stop_reason: str | None = None
        self.input_tokens = 0
        self.output_tokens = 0
        self._blocks: dict[int, Any] = {}
        self._json_buffers: dict[int, list[str]] = {}
        self._content: list[dict[str, Any]] = []

    def on_message_start(self, message: MessageResponse) -> None:
        self._reset()
        self.model = message.model
        self.input_tokens = message.usage.input_tokens

    def on_content_block_start(self, index: int, block: Any) -> None:
        if isinstance(block, ToolUseBlock):
            self._blocks[index] = block.model_copy()
            self._json_buffers[index] = []
        elif isinstance(block, TextBlock):
            self._blocks[index] = TextBlock(text=block.text)

    def on_text_delta(self, index: int, text: str) -> None:
        block = self._blocks.get(index)
        if isinstance(block, TextBlock):
            block.text += text

    def on_input_json_delta(self, index: int, partial_json: str) -> None:
        if index in self._json_buffers:
            self._json_buffers[index].append(partial_json)

    def on_content_block_stop(self, index: int) -> None:
        block = self._blocks.pop(index, None)
        if isinstance(block, ToolUseBlock):
            raw = "".join(self._json_buffers.pop(index, []))
            try:
                block.input = json.loads(raw) if raw else {}
            except json.JSONDecodeError:
                block.input = {}
            self._content.append(block.to_wire())
        elif isinstance(block, TextBlock) and block.text:
            self._content.append(block.to_wire())

    def on_message_delta(self, delta: MessageDelta, usage: Usage | None) -> None:
        if delta.stop_reason:
            self.stop_reason = delta.stop_reason
        if usage is not None:
            self.output_tokens = usage.output_tokens

    def on_message_stop(self) -> None:
        message = {
            "type": "message",
            "role": "assistant",
            "content": self._content,
            "model": self.model,
            "stop_reason": self.stop_reason,
            "usage": {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens},
        }
        self.out.write(json.dumps(message) + "\n")
        self.out.flush()

    def on_error(self, error: Exception) -> None:
        self.out.write(format_error_line(error) + "\n")
        self.out.flush()


class StreamJSONStreamHandler(StreamHandler):
    """Writes one JSON line per streaming event."""

    def __init__(self, out: TextIO | None = None):
        self.out = out or sys.stdout

    def emit(self, event: dict[str, Any]) -> None:
        self.out.write(json.dumps(event) + "\n")
        self.out.flush()

    def on_message_start(self, message: MessageResponse) -> None:
        self.emit({"type": "message_start", "message": message.to_wire()})

    def on_content_block_start(self, index: int, block: Any) -> None:
        self.emit({"type": "content_block_start", "index": index, "content_block": block.to_wire()})

    def on_text_delta(self, index: int, text: str) -> None:
        self.emit({"type": "text_delta", "index": index, "text": text})

    def on_thinking_delta(self, index: int, thinking: str) -> None:
        self.emit({"type": "thinking_delta", "index": index, "thinking": thinking})

    def on_input_json_delta(self, index: int, partial_json: str) -> None:
        self.emit({"type": "input_json_delta", "index": index, "partial_json": partial_json})

    def on_content_block_stop(self, index: int) -> None:
        self.emit({"type": "content_block_stop", "index": index})

    def on_message_delta(self, delta: MessageDelta, usage: Usage | None) -> None:
        event: dict[str, Any] = {"type": "message_delta", "delta": delta.to_wire()}
        if usage is not None:
            event["usage"] = usage.to_wire()
        self.emit(event)

    def on_message_stop(self) -> None:
        self.emit({"type": "message_stop"})

    def on_error(self, error: Exception) -> None:
        self.out.write(format_error_line(error) + "\n")
        self.out.flush()
