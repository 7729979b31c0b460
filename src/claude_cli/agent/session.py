"""
Session persistence.

Sessions are JSON files under ``~/.claude/projects/<cwd-hash>/sessions/``
holding ``{id, model, cwd, messages, created_at, updated_at}``.
"""

import asyncio
import hashlib
import os
import time
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import BaseModel, Field, ValidationError

from ..api.types import Message
from .history import History

logger = structlog.get_logger()

DIR_MODE = 0o700
FILE_MODE = 0o600


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """A saved conversation."""

    id: str
    model: str = ""
    cwd: str = ""
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class SessionNotFound(LookupError):
    """No session matched the request."""


def generate_id() -> str:
    """Time-ordered session ID."""
    return str(time.time_ns())


def project_hash(cwd: str) -> str:
    """First 16 bytes of SHA-256 of the working directory, hex encoded."""
    return hashlib.sha256(cwd.encode("utf-8")).digest()[:16].hex()


def project_dir_for(cwd: str, home: Path | None = None) -> Path:
    return (home or Path.home()) / ".claude" / "projects" / project_hash(cwd) / "sessions"


class SessionStore:
    """Reads and writes session files for one project."""

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    @classmethod
    def for_cwd(cls, cwd: str, home: Path | None = None) -> "SessionStore":
        return cls(project_dir_for(cwd, home))

    def path_for(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def save(self, session: Session) -> None:
        """Write the session, stamping ``updated_at``."""
        self.directory.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
        session.updated_at = _now()

        path = self.path_for(session.id)
        data = session.model_dump_json(indent=2, exclude_none=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        logger.debug("Session saved", session_id=session.id, messages=len(session.messages))

    def load(self, session_id: str) -> Session:
        path = self.path_for(session_id)
        if not path.exists():
            raise SessionNotFound(f"session {session_id} not found")
        return self._load_file(path)

    def list(self) -> list[Session]:
        """All readable sessions, newest first. Corrupt files are skipped."""
        if not self.directory.is_dir():
            return []

        sessions = []
        for path in self.directory.glob("*.json"):
            try:
                sessions.append(self._load_file(path))
            except (OSError, ValidationError, ValueError) as e:
                logger.warning("Skipping unreadable session file", path=str(path), error=str(e))
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions

    def most_recent(self) -> Session:
        sessions = self.list()
        if not sessions:
            raise SessionNotFound("no sessions found")
        return sessions[0]

    def _load_file(self, path: Path) -> Session:
        return Session.model_validate_json(path.read_text(encoding="utf-8"))

    def checkpointer(self, session: Session):
        """Callback for ``Agent.on_turn_complete`` that saves after each turn.

        The history is snapshotted on the loop; the file write runs in a
        worker thread.
        """

        async def checkpoint(history: History) -> None:
            session.messages = history.snapshot()
            await asyncio.to_thread(self.save, session)

        return checkpoint
