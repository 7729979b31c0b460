"""
Agent module - the conversation loop and its collaborators.

Includes:
- Agent: model turn / tool execution loop
- History: in-memory conversation state
- Compactor: summarization of older history
- Prompt caching, thinking selection and system prompt assembly
- SessionStore: on-disk session files
- Hooks: lifecycle hooks around prompts, tool calls and turn ends
"""

from .cache import apply_prompt_caching, with_message_caching, with_system_prompt_caching, with_tools_caching
from .compaction import CompactionError, CompactionResult, Compactor
from .core import Agent
from .handlers import JSONStreamHandler, PrintStreamHandler, StreamJSONStreamHandler, ToolAwareStreamHandler
from .git_status import collect_git_status
from .history import History
from .hooks import CommandHooks, HookBlocked, HookConfig, Hooks, load_hook_config
from .session import Session, SessionNotFound, SessionStore
from .system_prompt import PromptContext, build_context_message, build_system_prompt
from .thinking import select_thinking_config

__all__ = [
    "Agent",
    "History",
    "Compactor",
    "CompactionError",
    "CompactionResult",
    "apply_prompt_caching",
    "with_message_caching",
    "with_system_prompt_caching",
    "with_tools_caching",
    "select_thinking_config",
    "PromptContext",
    "collect_git_status",
    "build_system_prompt",
    "build_context_message",
    "PrintStreamHandler",
    "ToolAwareStreamHandler",
    "JSONStreamHandler",
    "StreamJSONStreamHandler",
    "Session",
    "SessionStore",
    "SessionNotFound",
    "Hooks",
    "CommandHooks",
    "HookBlocked",
    "HookConfig",
    "load_hook_config",
]
