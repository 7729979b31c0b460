"""
Core agent loop.

The agent alternates between requesting a model turn and executing the
tool calls that turn asked for, until the model stops for any reason other
than ``tool_use``. Each iteration:

1. Builds a request from history, system blocks, tool definitions,
   thinking config and speed
2. Applies prompt caching and streams the response through the handler
3. Appends the assistant turn, optionally compacting the history
4. Executes tools and appends their results as one user message
"""

import asyncio
import inspect
from collections.abc import Callable, Sequence
from typing import Any

import structlog

from ..api.errors import ClaudeAPIError, MaxTurnsExceeded, ProtocolViolation
from ..api.models import is_fast_eligible
from ..api.types import (
    STOP_TOOL_USE,
    CreateMessageRequest,
    Message,
    MessageResponse,
    SystemBlock,
    ThinkingConfig,
    ToolDefinition,
    ToolResultBlock,
    ToolUseBlock,
)
from ..config import Settings, get_settings
from ..tools.base import ToolExecutor
from .cache import apply_prompt_caching
from .compaction import CompactionResult, Compactor
from .history import History
from .hooks import HookBlocked, Hooks

logger = structlog.get_logger()

TurnCallback = Callable[[History], Any]


class Agent:
    """Runs the tool-use loop for one conversation."""

    def __init__(
        self,
        client,
        system: Sequence[SystemBlock] | None = None,
        tools: Sequence[ToolDefinition] | None = None,
        tool_executor: ToolExecutor | None = None,
        handler: Any | None = None,
        history: History | None = None,
        compactor: Compactor | None = None,
        on_turn_complete: TurnCallback | None = None,
        thinking: ThinkingConfig | None = None,
        fast_mode: bool = False,
        max_turns: int | None = None,
        parallel_tools: bool = False,
        context_message: str = "",
        hooks: Hooks | None = None,
        settings: Settings | None = None,
    ):
        self.client = client
        self.system = list(system or [])
        self.tools = list(tools or [])
        self.tool_executor = tool_executor
        self.handler = handler
        self.history = history if history is not None else History()
        self.compactor = compactor
        self.on_turn_complete = on_turn_complete
        self.thinking = thinking
        self.fast_mode = fast_mode
        self.max_turns = max_turns
        self.parallel_tools = parallel_tools
        self.context_message = context_message
        self.hooks = hooks
        self.settings = settings or get_settings()

    @property
    def model(self) -> str:
        return self.client.model

    def set_model(self, model: str) -> None:
        self.client.set_model(model)

    def set_handler(self, handler: Any | None) -> None:
        self.handler = handler

    def clear(self) -> None:
        """Start a fresh conversation."""
        self.history.clear()

    async def compact(self) -> CompactionResult:
        """Compact the history now, regardless of token usage."""
        if self.compactor is None:
            raise ClaudeAPIError("compaction not configured")
        return await self.compactor.compact(self.history)

    async def send_message(self, text: str) -> MessageResponse:
        """Append a user message and run the loop to a terminal stop.

        Returns the final assistant response. Errors from the API client
        propagate; the failed turn's assistant message is not recorded.
        A ``HookBlocked`` from the prompt hook propagates before anything
        is added to the history.
        """
        if self.hooks is not None:
            text = await self.hooks.user_prompt_submit(text)
        self.history.add_user_message(text)
        return await self.run()

    async def run(self) -> MessageResponse:
        turns = 0
        while True:
            request = self.build_request()
            response = await self.client.create_message_stream(request, self.handler)
            turns += 1

            self.history.add_assistant_response(response.content)
            await self._maybe_compact(response)

            if response.stop_reason != STOP_TOOL_USE:
                logger.debug("Turn complete", stop_reason=response.stop_reason, turns=turns)
                await self._run_stop_hook()
                await self._notify_turn_complete()
                return response

            tool_uses = response.tool_uses()
            if not tool_uses:
                raise ProtocolViolation("stop_reason was tool_use but no tool_use blocks found")

            results = await self._execute_tools(tool_uses)
            self.history.add_tool_results(results)
            await self._notify_turn_complete()

            if self.max_turns is not None and turns >= self.max_turns:
                logger.warning("Maximum turns reached", max_turns=self.max_turns)
                raise MaxTurnsExceeded(self.max_turns)

    def build_request(self) -> CreateMessageRequest:
        """Request for the next model turn, with caching applied."""
        messages = list(self.history.messages)
        if self.context_message:
            messages.insert(0, Message.user_text(self.context_message))

        request = CreateMessageRequest(
            model=self.client.model,
            messages=messages,
            system=self.system,
            tools=self.tools,
            thinking=self.thinking,
        )
        if self.fast_mode and is_fast_eligible(self.client.model):
            request.speed = "fast"
        return apply_prompt_caching(request, self.settings)

    async def _maybe_compact(self, response: MessageResponse) -> None:
        if self.compactor is None or self.settings.compaction_disabled:
            return
        if not self.compactor.should_compact(response.usage):
            return
        logger.info("Context approaching limit, running compaction", input_tokens=response.usage.input_tokens)
        try:
            await self.compactor.compact(self.history)
        except ClaudeAPIError as e:
            logger.warning("Compaction failed", error=str(e))

    async def _execute_tools(self, tool_uses: list[ToolUseBlock]) -> list[ToolResultBlock]:
        """Run each tool call; results are returned in block order."""
        if self.parallel_tools and len(tool_uses) > 1:
            return list(await asyncio.gather(*(self._execute_tool(b) for b in tool_uses)))
        return [await self._execute_tool(block) for block in tool_uses]

    async def _execute_tool(self, block: ToolUseBlock) -> ToolResultBlock:
        if self.tool_executor is None or not self.tool_executor.has_tool(block.name):
            logger.warning("Tool not available", tool_name=block.name)
            return ToolResultBlock.make(block.id, f'Tool "{block.name}" is not available.', is_error=True)

        if block.input_error is not None:
            logger.warning("Refusing tool call with undecodable input", tool_name=block.name)
            return ToolResultBlock.make(
                block.id, f"Invalid tool input JSON: {block.input_error}", is_error=True
            )

        if self.hooks is not None:
            try:
                await self.hooks.pre_tool_use(block.name, block.input)
            except HookBlocked as e:
                logger.info("Tool call blocked by hook", tool_name=block.name, reason=str(e))
                return ToolResultBlock.make(block.id, f"Hook blocked tool execution: {e}", is_error=True)

        try:
            result = await self.tool_executor.execute(block.name, block.input)
        except Exception as e:
            logger.error("Tool execution raised", tool_name=block.name, error=str(e))
            output, is_error = f"Error executing tool: {e}", True
        else:
            if result.success:
                output, is_error = result.output, False
            else:
                output, is_error = result.output or f"Error executing tool: {result.error}", True

        if self.hooks is not None:
            try:
                await self.hooks.post_tool_use(block.name, block.input, output, is_error)
            except Exception as e:
                logger.warning("PostToolUse hook failed", tool_name=block.name, error=str(e))

        return ToolResultBlock.make(block.id, output, is_error=is_error)

    async def _run_stop_hook(self) -> None:
        if self.hooks is None:
            return
        try:
            await self.hooks.stop()
        except Exception as e:
            logger.warning("Stop hook failed", error=str(e))

    async def _notify_turn_complete(self) -> None:
        if self.on_turn_complete is None:
            return
        outcome = self.on_turn_complete(self.history)
        if inspect.isawaitable(outcome):
            await outcome
