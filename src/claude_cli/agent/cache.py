"""
Prompt caching: cache_control placement on the stable request prefix.

The API honours at most four markers per request. We use one on the system
prompt, one on the tool list and one each on the last two messages.
Every function here returns new lists and never mutates its inputs.
"""

from collections.abc import Sequence

from ..api.types import (
    EPHEMERAL,
    THINKING_BLOCK_TYPES,
    CreateMessageRequest,
    Message,
    SystemBlock,
    TextBlock,
    ToolDefinition,
)
from ..config import Settings, get_settings

MESSAGES_TO_MARK = 2


def is_caching_enabled(model: str, settings: Settings | None = None) -> bool:
    return (settings or get_settings()).is_caching_enabled(model)


def with_system_prompt_caching(blocks: Sequence[SystemBlock]) -> list[SystemBlock]:
    """Copy of ``blocks`` with a marker on the last block."""
    out = list(blocks)
    if out:
        out[-1] = out[-1].model_copy(update={"cache_control": EPHEMERAL})
    return out


def with_tools_caching(tools: Sequence[ToolDefinition]) -> list[ToolDefinition]:
    """Copy of ``tools`` with a marker on the last definition."""
    out = list(tools)
    if out:
        out[-1] = out[-1].model_copy(update={"cache_control": EPHEMERAL})
    return out


def with_message_caching(messages: Sequence[Message]) -> list[Message]:
    """Copy of ``messages`` with a marker on each of the last two messages."""
    out = list(messages)
    for i in range(max(0, len(out) - MESSAGES_TO_MARK), len(out)):
        out[i] = _mark_message(out[i])
    return out


def _mark_message(message: Message) -> Message:
    if isinstance(message.content, str):
        block = TextBlock(text=message.content, cache_control=EPHEMERAL)
        return message.model_copy(update={"content": [block]})

    blocks = list(message.content)
    for i in range(len(blocks) - 1, -1, -1):
        if blocks[i].type not in THINKING_BLOCK_TYPES:
            blocks[i] = blocks[i].model_copy(update={"cache_control": EPHEMERAL})
            return message.model_copy(update={"content": blocks})
    # Thinking-only messages get no marker.
    return message


def apply_prompt_caching(
    request: CreateMessageRequest,
    settings: Settings | None = None,
) -> CreateMessageRequest:
    """Return a copy of ``request`` annotated for caching, if enabled for its model."""
    if not is_caching_enabled(request.model, settings):
        return request
    update: dict = {"messages": with_message_caching(request.messages)}
    if request.system:
        update["system"] = with_system_prompt_caching(request.system)
    if request.tools:
        update["tools"] = with_tools_caching(request.tools)
    return request.model_copy(update=update)


def count_cache_markers(request: CreateMessageRequest) -> int:
    """Number of cache_control markers in a request."""
    count = sum(1 for b in request.system or [] if b.cache_control is not None)
    count += sum(1 for t in request.tools or [] if t.cache_control is not None)
    for message in request.messages:
        if isinstance(message.content, list):
            count += sum(1 for b in message.content if b.cache_control is not None)
    return count
