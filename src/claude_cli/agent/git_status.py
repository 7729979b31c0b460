"""
Git status snapshot for the system prompt.
"""

import asyncio

import structlog

logger = structlog.get_logger()

MAX_STATUS_CHARS = 40_000
RECENT_COMMITS = 5

TRUNCATION_NOTE = (
    "\n... (truncated because it exceeds 40k characters. "
    'If you need more information, run "git status" using BashTool)'
)


async def _git(cwd: str, *args: str) -> tuple[int, str]:
    """Run git in ``cwd``; returns (exit code, stripped stdout)."""
    try:
        process = await asyncio.create_subprocess_exec(
            "git", *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            cwd=cwd,
        )
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        logger.debug("git unavailable", error=str(e))
        return -1, ""
    stdout, _ = await process.communicate()
    return process.returncode, stdout.decode("utf-8", errors="replace").strip()


async def _is_repo(cwd: str) -> bool:
    code, out = await _git(cwd, "rev-parse", "--is-inside-work-tree")
    return code == 0 and out == "true"


async def _current_branch(cwd: str) -> str:
    code, out = await _git(cwd, "--no-optional-locks", "branch", "--show-current")
    if code != 0:
        return ""
    if out:
        return out
    # Detached HEAD
    code, sha = await _git(cwd, "--no-optional-locks", "rev-parse", "--short", "HEAD")
    return sha if code == 0 else "unknown"


async def _main_branch(cwd: str) -> str:
    code, ref = await _git(cwd, "--no-optional-locks", "symbolic-ref", "refs/remotes/origin/HEAD")
    if code == 0 and ref:
        return ref.rsplit("/", 1)[-1]
    for branch in ("main", "master"):
        code, _ = await _git(cwd, "--no-optional-locks", "show-ref", "--verify", "--quiet", f"refs/heads/{branch}")
        if code == 0:
            return branch
    return "main"


async def _status_short(cwd: str) -> str:
    code, out = await _git(cwd, "--no-optional-locks", "status", "--short")
    return out if code == 0 else ""


async def _recent_commits(cwd: str) -> str:
    code, out = await _git(cwd, "--no-optional-locks", "log", "--oneline", "-n", str(RECENT_COMMITS))
    return out if code == 0 else ""


def format_git_status(branch: str, main_branch: str, status: str, commits: str) -> str:
    if not status:
        status = "(clean)"
    if len(status) > MAX_STATUS_CHARS:
        status = status[:MAX_STATUS_CHARS] + TRUNCATION_NOTE
    return (
        "This is the git status at the start of the conversation. Note that this status "
        "is a snapshot in time, and will not update during the conversation.\n"
        f"Current branch: {branch}\n\n"
        f"Main branch (you will usually use this for PRs): {main_branch}\n\n"
        f"Status:\n{status}\n\n"
        f"Recent commits:\n{commits}"
    )


async def collect_git_status(cwd: str) -> str:
    """Snapshot of the repository at ``cwd``, or "" outside a git work tree."""
    if not await _is_repo(cwd):
        return ""
    branch, main_branch, status, commits = await asyncio.gather(
        _current_branch(cwd),
        _main_branch(cwd),
        _status_short(cwd),
        _recent_commits(cwd),
    )
    return format_git_status(branch, main_branch, status, commits)
