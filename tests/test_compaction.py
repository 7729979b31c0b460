"""
Tests for conversation compaction.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from claude_cli.agent.compaction import (
    SUMMARY_PREFIX,
    SUMMARY_REQUEST,
    SUMMARY_SYSTEM_PROMPT,
    CompactionError,
    Compactor,
    find_split_point,
)
from claude_cli.agent.history import History
from claude_cli.api.errors import APIStatusError
from claude_cli.api.types import (
    Message,
    MessageResponse,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    Usage,
)

from conftest import text_response


def plain_history(n: int) -> History:
    history = History()
    for i in range(n):
        if i % 2 == 0:
            history.add_user_message(f"user {i}")
        else:
            history.add_assistant_response([TextBlock(text=f"assistant {i}")])
    return history


def tool_pair(tool_id: str) -> list[Message]:
    return [
        Message.blocks("assistant", [ToolUseBlock(id=tool_id, name="Bash", input={"command": "ls"})]),
        Message.blocks("user", [ToolResultBlock.make(tool_id, "file.txt")]),
    ]


@pytest.mark.asyncio
async def test_compaction_replaces_prefix(backend):
    """Test that six messages compact to a summary plus the last four."""
    backend.add_response(text_response("Earlier we discussed files."))
    client = backend.client()
    history = plain_history(6)
    tail = history.snapshot()[2:]

    result = await Compactor(client, preserve_recent=4).compact(history)

    assert result.original_message_count == 6
    assert result.compacted_message_count == 5
    assert result.summarized_count == 2
    assert result.compacted
    messages = history.messages
    assert messages[0].role == "user"
    assert messages[0].content == SUMMARY_PREFIX + "Earlier we discussed files."
    assert list(messages[1:]) == tail


@pytest.mark.asyncio
async def test_summarization_request(backend):
    """Test the shape of the summarization request."""
    backend.add_response(text_response("summary"))
    client = backend.client()

    await Compactor(client, preserve_recent=4, model="haiku").compact(plain_history(6))

    body = backend.bodies()[0]
    assert body["model"] == "claude-haiku-4-5-20251001"
    assert body["system"] == [{"type": "text", "text": SUMMARY_SYSTEM_PROMPT}]
    assert [m["content"] for m in body["messages"]] == [
        "user 0",
        [{"type": "text", "text": "assistant 1"}],
        SUMMARY_REQUEST,
    ]


@pytest.mark.asyncio
async def test_nothing_to_compact(backend):
    """Test that a short history is left alone without an API call."""
    history = plain_history(4)

    result = await Compactor(backend.client(), preserve_recent=4).compact(history)

    assert not result.compacted
    assert len(history) == 4
    assert backend.requests == []


@pytest.mark.asyncio
async def test_error_leaves_history_untouched(backend):
    """Test that a failed summarization does not modify history."""
    backend.add_status(500, "down")
    history = plain_history(6)
    before = history.snapshot()

    with pytest.raises(APIStatusError):
        await Compactor(backend.client(), preserve_recent=4).compact(history)

    assert list(history.messages) == before


@pytest.mark.asyncio
async def test_empty_summary_is_error():
    """Test that a summary without text raises CompactionError."""
    client = MagicMock()
    client.create_message_stream = AsyncMock(
        return_value=MessageResponse(content=[], stop_reason="end_turn", usage=Usage())
    )
    history = plain_history(6)

    with pytest.raises(CompactionError):
        await Compactor(client, preserve_recent=4).compact(history)
    assert len(history) == 6


def test_split_point_plain():
    """Test the default split with no tool pairs."""
    messages = list(plain_history(6).messages)
    assert find_split_point(messages, 4) == 2


def test_split_point_slides_before_tool_pair():
    """Test that the split never separates a tool_use from its result."""
    messages = [Message.user_text("start"), *tool_pair("toolu_1"), Message.user_text("next")]
    messages.append(Message.blocks("assistant", [TextBlock(text="done")]))
    # Keeping only the last three would orphan the tool_result.
    assert find_split_point(messages, 3) == 1


def test_split_point_no_safe_split():
    """Test that a history opening with a tool pair cannot be split inside it."""
    messages = [*tool_pair("toolu_1"), Message.user_text("a")]
    assert find_split_point(messages, 2) == 0


@pytest.mark.asyncio
async def test_compaction_skipped_without_safe_split(backend):
    """Test that no summary is made when no safe split exists."""
    history = History([*tool_pair("toolu_1"), Message.user_text("a")])

    result = await Compactor(backend.client(), preserve_recent=2).compact(history)

    assert not result.compacted
    assert backend.requests == []


def test_should_compact_threshold():
    """Test the input token threshold."""
    compactor = Compactor(client=None, max_input_tokens=1000)
    assert not compactor.should_compact(Usage(input_tokens=999))
    assert compactor.should_compact(Usage(input_tokens=1000))
