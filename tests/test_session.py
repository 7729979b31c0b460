"""
Tests for session persistence.
"""

import stat
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from claude_cli.agent.history import History
from claude_cli.agent.session import (
    Session,
    SessionNotFound,
    SessionStore,
    generate_id,
    project_dir_for,
    project_hash,
)
from claude_cli.api.types import TextBlock, ToolUseBlock


def test_project_hash():
    """Test that the project hash is 32 hex characters and stable."""
    digest = project_hash("/home/user/project")
    assert len(digest) == 32
    assert digest == project_hash("/home/user/project")
    assert digest != project_hash("/home/user/other")


def test_project_dir_layout(tmp_path):
    """Test the on-disk location of a project's sessions."""
    path = project_dir_for("/work", home=tmp_path)
    assert path == tmp_path / ".claude" / "projects" / project_hash("/work") / "sessions"


def test_save_and_load_round_trip(tmp_path):
    """Test that a saved session loads back with its messages."""
    store = SessionStore(tmp_path / "sessions")
    history = History()
    history.add_user_message("hello")
    history.add_assistant_response([
        TextBlock(text="calling"),
        ToolUseBlock(id="toolu_1", name="Bash", input={"command": "ls"}),
    ])
    session = Session(id=generate_id(), model="claude-sonnet-4-6", cwd="/work", messages=history.snapshot())

    store.save(session)
    loaded = store.load(session.id)

    assert loaded.model == "claude-sonnet-4-6"
    assert loaded.cwd == "/work"
    assert loaded.messages == session.messages
    assert loaded.messages[1].content[1].input == {"command": "ls"}


def test_file_permissions(tmp_path):
    """Test that session files and directories are private."""
    store = SessionStore(tmp_path / "sessions")
    session = Session(id="abc")
    store.save(session)

    assert stat.S_IMODE(store.path_for("abc").stat().st_mode) == 0o600
    assert stat.S_IMODE(store.directory.stat().st_mode) == 0o700


def test_load_missing_session(tmp_path):
    """Test that loading an unknown ID raises SessionNotFound."""
    with pytest.raises(SessionNotFound):
        SessionStore(tmp_path).load("nope")


def test_list_newest_first_skips_corrupt(tmp_path):
    """Test list ordering and tolerance of unreadable files."""
    store = SessionStore(tmp_path)
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    stamps = iter([base, base + timedelta(minutes=5)])

    with patch("claude_cli.agent.session._now", side_effect=lambda: next(stamps)):
        store.save(Session(id="older", created_at=base))
        store.save(Session(id="newer", created_at=base))
    (tmp_path / "broken.json").write_text("{not json")

    sessions = store.list()

    assert [s.id for s in sessions] == ["newer", "older"]
    assert store.most_recent().id == "newer"


def test_most_recent_without_sessions(tmp_path):
    """Test that an empty store has no most recent session."""
    store = SessionStore(tmp_path / "missing")
    assert store.list() == []
    with pytest.raises(SessionNotFound):
        store.most_recent()


@pytest.mark.asyncio
async def test_checkpointer_saves_history(tmp_path):
    """Test the turn-complete callback writes the current history."""
    store = SessionStore(tmp_path)
    session = Session(id="s1")
    history = History()
    history.add_user_message("first")

    await store.checkpointer(session)(history)
    history.add_user_message("second")

    assert [m.content for m in store.load("s1").messages] == ["first"]


@pytest.mark.asyncio
async def test_checkpointer_writes_off_the_event_loop(tmp_path):
    """Test the checkpoint save is handed to a worker thread."""
    store = SessionStore(tmp_path)
    session = Session(id="s1")
    history = History()
    history.add_user_message("first")

    with patch("claude_cli.agent.session.asyncio.to_thread", new=AsyncMock()) as to_thread:
        await store.checkpointer(session)(history)

    to_thread.assert_awaited_once_with(store.save, session)
    assert [m.content for m in session.messages] == ["first"]
