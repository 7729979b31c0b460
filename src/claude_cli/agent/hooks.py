"""
Lifecycle hooks for the agent loop.

Hooks fire when a prompt is submitted, around each tool call, and when a
turn ends. ``Hooks`` is the no-op base the loop talks to; ``CommandHooks``
runs the shell commands configured under ``"hooks"`` in settings.json.
"""

import asyncio
import contextlib
import json
import os
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ValidationError

logger = structlog.get_logger()

DEFAULT_HOOK_TIMEOUT = 60.0
MAX_HOOK_OUTPUT_ENV = 10_000


class HookBlocked(Exception):
    """A hook rejected the action it was asked about."""


class HookDef(BaseModel):
    """One configured hook action."""

    type: Literal["command", "prompt", "agent"] = "command"
    command: str = ""
    prompt: str = ""


class HookConfig(BaseModel):
    """Hook definitions keyed by lifecycle event."""

    PreToolUse: list[HookDef] = []
    PostToolUse: list[HookDef] = []
    UserPromptSubmit: list[HookDef] = []
    SessionStart: list[HookDef] = []
    Stop: list[HookDef] = []

    def is_empty(self) -> bool:
        return not any(
            (self.PreToolUse, self.PostToolUse, self.UserPromptSubmit, self.SessionStart, self.Stop)
        )


class Hooks:
    """Base hook set; every event is allowed and nothing is changed.

    Raising ``HookBlocked`` from ``user_prompt_submit`` rejects the prompt,
    and from ``pre_tool_use`` turns the call into an error result.
    """

    async def session_start(self) -> None:
        return None

    async def user_prompt_submit(self, prompt: str) -> str:
        return prompt

    async def pre_tool_use(self, name: str, tool_input: Any) -> None:
        return None

    async def post_tool_use(self, name: str, tool_input: Any, output: str, is_error: bool) -> None:
        return None

    async def stop(self) -> None:
        return None


class CommandHooks(Hooks):
    """Runs configured shell commands for each event.

    Commands get the event details in environment variables (``HOOK_EVENT``,
    ``TOOL_NAME``, ``TOOL_INPUT``, ...). A non-zero exit blocks the event,
    with stderr as the reason. Non-empty stdout from a UserPromptSubmit
    command replaces the prompt.
    """

    def __init__(self, config: HookConfig, cwd: str | None = None, timeout: float = DEFAULT_HOOK_TIMEOUT):
        self.config = config
        self.cwd = cwd
        self.timeout = timeout

    async def session_start(self) -> None:
        await self._run_all(self.config.SessionStart, {"HOOK_EVENT": "SessionStart"})

    async def user_prompt_submit(self, prompt: str) -> str:
        env = {"HOOK_EVENT": "UserPromptSubmit", "USER_MESSAGE": prompt}
        current = prompt
        for hook in self.config.UserPromptSubmit:
            output = await self._run(hook, env)
            if hook.type != "prompt" and output.strip():
                current = output.strip()
        return current

    async def pre_tool_use(self, name: str, tool_input: Any) -> None:
        env = {"HOOK_EVENT": "PreToolUse", "TOOL_NAME": name, "TOOL_INPUT": json.dumps(tool_input)}
        await self._run_all(self.config.PreToolUse, env)

    async def post_tool_use(self, name: str, tool_input: Any, output: str, is_error: bool) -> None:
        if len(output) > MAX_HOOK_OUTPUT_ENV:
            output = output[:MAX_HOOK_OUTPUT_ENV] + "...(truncated)"
        env = {
            "HOOK_EVENT": "PostToolUse",
            "TOOL_NAME": name,
            "TOOL_INPUT": json.dumps(tool_input),
            "TOOL_OUTPUT": output,
            "TOOL_IS_ERROR": "true" if is_error else "false",
        }
        await self._run_all(self.config.PostToolUse, env)

    async def stop(self) -> None:
        await self._run_all(self.config.Stop, {"HOOK_EVENT": "Stop"})

    async def _run_all(self, hooks: list[HookDef], env: dict[str, str]) -> None:
        for hook in hooks:
            await self._run(hook, env)

    async def _run(self, hook: HookDef, extra_env: dict[str, str]) -> str:
        if hook.type == "prompt":
            # Prompt hooks only inject context, they never block.
            return hook.prompt
        if not hook.command:
            return ""

        env = os.environ.copy()
        env.update(extra_env)
        process = await asyncio.create_subprocess_shell(
            hook.command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd,
            env=env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            raise HookBlocked(f"hook timed out after {self.timeout:g} seconds")
        except asyncio.CancelledError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            raise

        if process.returncode != 0:
            reason = stderr.decode("utf-8", errors="replace").strip()
            logger.info("Hook blocked", event_type=extra_env["HOOK_EVENT"], exit_code=process.returncode)
            raise HookBlocked(reason or f"exit status {process.returncode}")
        return stdout.decode("utf-8", errors="replace")


def settings_paths(cwd: str, home: str | None = None) -> list[Path]:
    """Settings files from lowest to highest priority."""
    home_dir = Path(home) if home else Path.home()
    return [
        home_dir / ".claude" / "settings.json",
        Path(cwd) / ".claude" / "settings.json",
        Path(cwd) / ".claude" / "settings.local.json",
        Path("/etc/claude/settings.json"),
    ]


def load_hook_config(cwd: str, home: str | None = None) -> HookConfig:
    """Hook config from settings.json; the highest-priority file with hooks wins."""
    config = HookConfig()
    for path in settings_paths(cwd, home):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            continue
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Skipping unreadable settings file", path=str(path), error=str(e))
            continue
        if not isinstance(data, dict) or data.get("hooks") is None:
            continue
        try:
            config = HookConfig.model_validate(data["hooks"])
        except ValidationError as e:
            logger.warning("Invalid hooks config", path=str(path), error=str(e))
    return config
