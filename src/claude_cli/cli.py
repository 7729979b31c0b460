"""
Command-line interface for claude-cli.
"""

import argparse
import asyncio
import logging
import os
import sys

import structlog

from . import __version__
from .agent import (
    Agent,
    Compactor,
    History,
    JSONStreamHandler,
    PromptContext,
    Session,
    SessionNotFound,
    SessionStore,
    StreamJSONStreamHandler,
    ToolAwareStreamHandler,
    build_context_message,
    build_system_prompt,
    select_thinking_config,
)
from .agent.git_status import collect_git_status
from .agent.handlers import format_error_line
from .agent.hooks import CommandHooks, HookBlocked, load_hook_config
from .agent.session import generate_id
from .agent.system_prompt import format_claude_md, format_current_date, load_claude_md_entries
from .api import APIEventError, ClaudeAPIError, MessagesClient, SystemBlock
from .api.models import FAST_MODE_MODEL_ALIAS, display_name, is_fast_eligible
from .api.types import ThinkingConfig
from .config import Settings, get_settings
from .tools import ToolRegistry

logger = structlog.get_logger()

DEFAULT_THINKING_BUDGET = 10_000
OUTPUT_FORMATS = ("text", "json", "stream-json")


def configure_logging(level: str = "WARNING") -> None:
    """Route structlog through stdlib logging on stderr so stdout stays clean."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claude",
        description="Claude - agentic coding assistant in your terminal",
    )
    parser.add_argument("prompt", nargs="*", help="Prompt to send")
    parser.add_argument("-p", "--print", action="store_true", help="Print the response and exit")
    parser.add_argument("--model", help="Model alias (sonnet, opus, haiku) or full model ID")
    parser.add_argument("--max-tokens", type=int, help="Maximum output tokens per turn")
    parser.add_argument("--output-format", choices=OUTPUT_FORMATS, default="text")
    parser.add_argument("--system-prompt", help="Replace the default system prompt")
    parser.add_argument("--append-system-prompt", help="Append text to the system prompt")
    parser.add_argument("--max-turns", type=int, help="Maximum model turns per prompt")
    parser.add_argument(
        "--thinking",
        choices=("enabled", "adaptive", "disabled"),
        help="Extended thinking mode (default: chosen per model)",
    )
    parser.add_argument("--max-thinking-tokens", type=int, help="Thinking budget for --thinking enabled")
    parser.add_argument("--fast", action="store_true", help="Use fast mode on eligible models")

    resume = parser.add_mutually_exclusive_group()
    resume.add_argument("-c", "--continue", dest="continue_session", action="store_true",
                        help="Continue the most recent session")
    resume.add_argument("-r", "--resume", metavar="ID", help="Resume a session by ID")

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_thinking(args: argparse.Namespace, model: str, settings: Settings, max_tokens: int) -> ThinkingConfig | None:
    """Thinking config from flags, falling back to per-model selection."""
    if args.thinking == "disabled":
        return None
    if args.thinking == "adaptive":
        return ThinkingConfig.adaptive()
    if args.max_thinking_tokens is not None:
        if args.max_thinking_tokens <= 0:
            return None
        return ThinkingConfig.enabled(args.max_thinking_tokens)
    if args.thinking == "enabled":
        return ThinkingConfig.enabled(DEFAULT_THINKING_BUDGET)
    return select_thinking_config(model, settings, default_max_tokens=max_tokens)


def build_system_blocks(
    args: argparse.Namespace, model: str, settings: Settings, cwd: str, git_status: str = ""
) -> list[SystemBlock]:
    if args.system_prompt:
        blocks = [SystemBlock(text=args.system_prompt)]
        if args.append_system_prompt:
            blocks.append(SystemBlock(text=args.append_system_prompt))
        return blocks
    ctx = PromptContext(
        cwd=cwd,
        model=model,
        version=settings.version,
        git_status=git_status,
        append_prompt=args.append_system_prompt or "",
    )
    return build_system_prompt(ctx)


def make_handler(output_format: str):
    if output_format == "json":
        return JSONStreamHandler()
    if output_format == "stream-json":
        return StreamJSONStreamHandler()
    return ToolAwareStreamHandler()


def already_reported(error: BaseException, agent: Agent) -> bool:
    """In-stream API errors were printed by the handler as they arrived."""
    return isinstance(error, APIEventError) and agent.handler is not None


def report_error(error: BaseException | str, output_format: str) -> None:
    if output_format == "text":
        print(f"Error: {error}", file=sys.stderr)
    else:
        print(format_error_line(error), flush=True)


def open_session(args: argparse.Namespace, store: SessionStore, model: str, cwd: str) -> Session:
    if args.continue_session:
        return store.most_recent()
    if args.resume:
        return store.load(args.resume)
    return Session(id=generate_id(), model=model, cwd=cwd)


async def run(args: argparse.Namespace, settings: Settings, prompt: str, print_mode: bool) -> int:
    cwd = os.getcwd()
    try:
        client = MessagesClient.from_settings(settings)
    except ClaudeAPIError as e:
        report_error(e, args.output_format)
        return 1

    async with client:
        fast_mode = args.fast or settings.fast_mode
        if args.model:
            client.set_model(args.model)
        elif fast_mode and not is_fast_eligible(client.model):
            client.set_model(FAST_MODE_MODEL_ALIAS)
        if args.max_tokens:
            client.max_tokens = args.max_tokens

        store = SessionStore.for_cwd(cwd)
        try:
            session = open_session(args, store, client.model, cwd)
        except SessionNotFound as e:
            report_error(e, args.output_format)
            return 1

        registry = ToolRegistry()
        hooks = None
        hook_config = load_hook_config(cwd)
        if not hook_config.is_empty():
            hooks = CommandHooks(hook_config, cwd=cwd, timeout=settings.hook_timeout_seconds)
        git_status = "" if args.system_prompt else await collect_git_status(cwd)
        compactor = None
        if not settings.compaction_disabled:
            compactor = Compactor(client, model=settings.compact_model or None)

        agent = Agent(
            client,
            system=build_system_blocks(args, client.model, settings, cwd, git_status),
            tools=registry.definitions(),
            tool_executor=registry,
            handler=make_handler(args.output_format),
            history=History(session.messages),
            compactor=compactor,
            on_turn_complete=store.checkpointer(session),
            thinking=resolve_thinking(args, client.model, settings, client.max_tokens),
            fast_mode=fast_mode,
            max_turns=args.max_turns,
            context_message=build_context_message(
                format_claude_md(load_claude_md_entries(cwd)),
                format_current_date(),
            ),
            hooks=hooks,
            settings=settings,
        )
        logger.debug("Agent ready", model=client.model, session_id=session.id)

        if hooks is not None:
            try:
                await hooks.session_start()
            except HookBlocked as e:
                logger.warning("SessionStart hook failed", error=str(e))

        if print_mode:
            return await run_once(agent, prompt, args.output_format)
        return await repl(agent, prompt)


async def run_once(agent: Agent, prompt: str, output_format: str) -> int:
    if not prompt.strip():
        report_error(ValueError("no prompt given"), output_format)
        return 1
    try:
        await agent.send_message(prompt)
    except HookBlocked as e:
        report_error(f"prompt blocked by hook: {e}", output_format)
        return 1
    except ClaudeAPIError as e:
        if not already_reported(e, agent):
            report_error(e, output_format)
        return 1
    return 0


async def repl(agent: Agent, initial_prompt: str = "") -> int:
    """Minimal line-oriented interactive loop."""
    print(f"Claude ({display_name(agent.model)}). Type /exit to quit, /clear to reset, /compact to summarize.")
    pending = initial_prompt.strip()
    while True:
        if pending:
            line, pending = pending, ""
        else:
            try:
                line = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                print()
                return 0
        if not line:
            continue

        if line in ("/exit", "/quit"):
            return 0
        if line == "/clear":
            agent.clear()
            print("Conversation cleared.")
            continue

        try:
            if line == "/compact":
                result = await agent.compact()
                print(f"Compacted {result.original_message_count} messages to {result.compacted_message_count}.")
            else:
                await agent.send_message(line)
        except HookBlocked as e:
            report_error(f"prompt blocked by hook: {e}", "text")
        except ClaudeAPIError as e:
            if not already_reported(e, agent):
                report_error(e, "text")


def read_prompt(args: argparse.Namespace) -> tuple[str, bool]:
    """Prompt text and whether to run non-interactively."""
    prompt = " ".join(args.prompt)
    print_mode = args.print
    if not sys.stdin.isatty():
        piped = sys.stdin.read()
        prompt = f"{prompt}\n\n{piped}".strip() if prompt else piped
        print_mode = True
    return prompt, print_mode


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.log_level)

    prompt, print_mode = read_prompt(args)
    try:
        code = asyncio.run(run(args, settings, prompt, print_mode))
    except KeyboardInterrupt:
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
