"""
In-memory conversation history owned by the agent loop.
"""

from collections.abc import Iterable

from ..api.types import ROLE_ASSISTANT, ROLE_USER, Message


class History:
    """Ordered sequence of messages.

    Only the agent loop mutates a History. Other readers (session store,
    compactor) should take a ``snapshot()``.
    """

    def __init__(self, messages: Iterable[Message] | None = None):
        self._messages: list[Message] = list(messages or [])

    @property
    def messages(self) -> tuple[Message, ...]:
        """Read-only view of the current messages."""
        return tuple(self._messages)

    def snapshot(self) -> list[Message]:
        """Deep copy safe to hand to another task."""
        return [m.model_copy(deep=True) for m in self._messages]

    def add_user_message(self, text: str) -> None:
        self._messages.append(Message.user_text(text))

    def add_assistant_response(self, blocks: Iterable) -> None:
        self._messages.append(Message.blocks(ROLE_ASSISTANT, list(blocks)))

    def add_tool_results(self, results: Iterable) -> None:
        """Append tool_result blocks as one user message."""
        self._messages.append(Message.blocks(ROLE_USER, list(results)))

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def set_messages(self, messages: Iterable[Message]) -> None:
        """Overwrite the whole history with a copy of ``messages``."""
        self._messages = list(messages)

    def replace_range(self, start: int, end: int, replacement: Iterable[Message]) -> None:
        """Replace ``[start, end)`` with ``replacement``. Invalid bounds are a no-op."""
        if start < 0 or end > len(self._messages) or start > end:
            return
        self._messages[start:end] = list(replacement)

    def clear(self) -> None:
        self._messages = []

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(tuple(self._messages))
