"""
Wire types for the Claude Messages API.

Content blocks are a discriminated union keyed on ``type``. Every model
serialises with ``to_wire()``, which drops unset optional fields so request
payloads stay clean.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# Roles
ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

# Stop reasons
STOP_END_TURN = "end_turn"
STOP_TOOL_USE = "tool_use"
STOP_MAX_TOKENS = "max_tokens"
STOP_SEQUENCE = "stop_sequence"


class WireModel(BaseModel):
    """Base for all wire models."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class CacheControl(WireModel):
    """Instructs the API to cache the prefix ending at this block."""

    type: Literal["ephemeral"] = "ephemeral"


EPHEMERAL = CacheControl()


class TextBlock(WireModel):
    type: Literal["text"] = "text"
    text: str = ""
    cache_control: CacheControl | None = None


class ImageSource(WireModel):
    type: Literal["base64"] = "base64"
    media_type: str
    data: str


class ImageBlock(WireModel):
    type: Literal["image"] = "image"
    source: ImageSource
    cache_control: CacheControl | None = None

    @classmethod
    def from_base64(cls, media_type: str, data: str) -> ImageBlock:
        return cls(source=ImageSource(media_type=media_type, data=data))


class ToolUseBlock(WireModel):
    """A tool invocation requested by the model.

    ``input`` is only meaningful after the block's ``content_block_stop``;
    ``raw_input`` keeps the exact partial-JSON concatenation the server sent.
    ``input_error`` is set when that text did not decode; such a call must
    not reach a tool.
    """

    type: Literal["tool_use"] = "tool_use"
    id: str = ""
    name: str = ""
    input: Any = Field(default_factory=dict)
    raw_input: str | None = Field(default=None, exclude=True)
    input_error: str | None = Field(default=None, exclude=True)
    cache_control: CacheControl | None = None


class ThinkingBlock(WireModel):
    type: Literal["thinking"] = "thinking"
    thinking: str = ""
    signature: str = ""
    cache_control: CacheControl | None = None


class RedactedThinkingBlock(WireModel):
    type: Literal["redacted_thinking"] = "redacted_thinking"
    data: str = ""
    cache_control: CacheControl | None = None


class ToolResultBlock(WireModel):
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: Union[str, list["ContentBlock"]] = ""
    is_error: bool | None = None
    cache_control: CacheControl | None = None

    @classmethod
    def make(cls, tool_use_id: str, content: str, is_error: bool = False) -> ToolResultBlock:
        return cls(tool_use_id=tool_use_id, content=content, is_error=True if is_error else None)


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, ToolUseBlock, ToolResultBlock, ThinkingBlock, RedactedThinkingBlock],
    Field(discriminator="type"),
]

ToolResultBlock.model_rebuild()

THINKING_BLOCK_TYPES = frozenset({"thinking", "redacted_thinking"})


class Message(WireModel):
    """A single conversation message; content is a string or a block list."""

    role: Literal["user", "assistant"]
    content: Union[str, list[ContentBlock]]

    @classmethod
    def user_text(cls, text: str) -> Message:
        return cls(role=ROLE_USER, content=text)

    @classmethod
    def blocks(cls, role: str, blocks: list[Any]) -> Message:
        return cls(role=role, content=list(blocks))

    def content_blocks(self) -> list[Any]:
        """Content as a block list, wrapping plain text in a TextBlock."""
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)

    def tool_uses(self) -> list[ToolUseBlock]:
        if isinstance(self.content, str):
            return []
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    def tool_result_ids(self) -> list[str]:
        if isinstance(self.content, str):
            return []
        return [b.tool_use_id for b in self.content if isinstance(b, ToolResultBlock)]


class SystemBlock(WireModel):
    type: Literal["text"] = "text"
    text: str
    cache_control: CacheControl | None = None


class ToolDefinition(WireModel):
    """Describes a tool the model may call."""

    name: str
    description: str
    input_schema: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    cache_control: CacheControl | None = None


class ThinkingConfig(WireModel):
    type: Literal["adaptive", "enabled", "disabled"]
    budget_tokens: int | None = None

    @classmethod
    def adaptive(cls) -> ThinkingConfig:
        return cls(type="adaptive")

    @classmethod
    def enabled(cls, budget_tokens: int) -> ThinkingConfig:
        return cls(type="enabled", budget_tokens=budget_tokens)

    @classmethod
    def disabled(cls) -> ThinkingConfig:
        return cls(type="disabled")


class RequestMetadata(WireModel):
    user_id: str | None = None


class CreateMessageRequest(WireModel):
    """Request body for POST /v1/messages."""

    model: str = ""
    max_tokens: int = 0
    messages: list[Message] = Field(default_factory=list)
    system: list[SystemBlock] | None = None
    tools: list[ToolDefinition] | None = None
    stream: bool | None = None
    metadata: RequestMetadata | None = None
    stop_sequences: list[str] | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None
    thinking: ThinkingConfig | None = None
    speed: str | None = None

    def to_wire(self) -> dict[str, Any]:
        payload = super().to_wire()
        # Empty lists are dropped like any other unset field.
        for key in ("system", "tools", "stop_sequences"):
            if key in payload and not payload[key]:
                del payload[key]
        return payload


class Usage(WireModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None


class MessageDelta(WireModel):
    stop_reason: str | None = None
    stop_sequence: str | None = None


class MessageResponse(WireModel):
    """A complete assistant message, streamed or not."""

    id: str = ""
    type: str = "message"
    role: str = ROLE_ASSISTANT
    content: list[ContentBlock] = Field(default_factory=list)
    model: str = ""
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage = Field(default_factory=Usage)

    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]


class APIErrorBody(WireModel):
    type: str = ""
    message: str = ""


class APIErrorPayload(WireModel):
    type: str = "error"
    error: APIErrorBody = Field(default_factory=APIErrorBody)
