"""
Conversation compaction - summarization of older history.

When the input token count of a response reaches the threshold, the older
part of the history is summarized by the model and replaced with a single
user message. The most recent messages are kept verbatim.

The split point never separates a tool_use from its tool_result: it slides
earlier until no pair straddles it.
"""

from dataclasses import dataclass

import structlog

from ..api.errors import ClaudeAPIError
from ..api.streaming import NoOpStreamHandler
from ..api.types import CreateMessageRequest, Message, SystemBlock, Usage
from .history import History

logger = structlog.get_logger()

DEFAULT_MAX_INPUT_TOKENS = 150_000
DEFAULT_PRESERVE_RECENT = 4

SUMMARY_PREFIX = "[Conversation Summary]\n"
SUMMARY_REQUEST = (
    "Please summarize the above conversation concisely, "
    "preserving all important context for continuation."
)
SUMMARY_SYSTEM_PROMPT = """You are a conversation summarizer. Your job is to create a concise summary of the conversation so far that preserves all important context, decisions made, files modified, commands run, and their results. The summary should enable continuing the conversation without loss of critical information.

Be concise but thorough. Include:
- Key decisions and their rationale
- Files that were read, created, or modified (with paths)
- Important command outputs or errors
- Current state of any ongoing task
- Any constraints or requirements mentioned by the user"""


class CompactionError(ClaudeAPIError):
    """The summarizer produced no usable summary."""


@dataclass
class CompactionResult:
    """Outcome of a compaction run."""

    original_message_count: int
    compacted_message_count: int
    summarized_count: int = 0
    summary: str = ""

    @property
    def compacted(self) -> bool:
        return self.summarized_count > 0


def find_split_point(messages: list[Message], preserve_recent: int) -> int:
    """Index where the preserved suffix starts; 0 means nothing to compact.

    Starts at ``len(messages) - preserve_recent`` and moves earlier while a
    tool_result in the suffix answers a tool_use in the prefix.
    """
    split = len(messages) - preserve_recent
    while split > 0 and _straddles(messages, split):
        split -= 1
    return max(split, 0)


def _straddles(messages: list[Message], split: int) -> bool:
    prefix_ids = {b.id for m in messages[:split] for b in m.tool_uses()}
    if not prefix_ids:
        return False
    return any(
        tool_use_id in prefix_ids
        for m in messages[split:]
        for tool_use_id in m.tool_result_ids()
    )


class Compactor:
    """Summarizes older history when usage approaches the context limit."""

    def __init__(
        self,
        client,
        max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS,
        preserve_recent: int = DEFAULT_PRESERVE_RECENT,
        model: str | None = None,
    ):
        self.client = client
        self.max_input_tokens = max_input_tokens
        self.preserve_recent = preserve_recent
        self.model = model

    def should_compact(self, usage: Usage) -> bool:
        return usage.input_tokens >= self.max_input_tokens

    async def compact(self, history: History) -> CompactionResult:
        """Replace the older part of ``history`` with a summary message.

        Errors from the summarization call propagate and leave the history
        untouched.
        """
        messages = history.snapshot()
        total = len(messages)
        if total <= self.preserve_recent:
            return CompactionResult(total, total)

        split = find_split_point(messages, self.preserve_recent)
        if split <= 0:
            logger.info("Compaction skipped, no safe split point", message_count=total)
            return CompactionResult(total, total)

        logger.info("Starting conversation compaction", message_count=total, summarizing=split)
        summary = await self._summarize(messages[:split])

        history.replace_range(0, split, [Message.user_text(summary)])

        result = CompactionResult(
            original_message_count=total,
            compacted_message_count=len(history),
            summarized_count=split,
            summary=summary,
        )
        logger.info(
            "Compaction complete",
            original=result.original_message_count,
            compacted=result.compacted_message_count,
        )
        return result

    async def _summarize(self, messages: list[Message]) -> str:
        request = CreateMessageRequest(
            model=self.model or "",
            messages=[*messages, Message.user_text(SUMMARY_REQUEST)],
            system=[SystemBlock(text=SUMMARY_SYSTEM_PROMPT)],
        )
        response = await self.client.create_message_stream(request, NoOpStreamHandler())

        if not response.content:
            raise CompactionError("empty summarization response")
        summary = response.text()
        if not summary:
            raise CompactionError("no text in summarization response")
        return SUMMARY_PREFIX + summary
