"""
Tests for system prompt and context message assembly.
"""

from datetime import date

from claude_cli.agent.system_prompt import (
    CLAUDE_MD_PREAMBLE,
    ClaudeMDEntry,
    PromptContext,
    build_context_message,
    build_system_prompt,
    format_claude_md,
    format_current_date,
    load_claude_md_entries,
    register_core_section,
    register_project_section,
    reset_registry,
)


def make_context(**kwargs) -> PromptContext:
    kwargs.setdefault("cwd", "/work/project")
    kwargs.setdefault("model", "claude-opus-4-6")
    return PromptContext(**kwargs)


def test_default_prompt_has_core_block_only():
    """Test that the default prompt is a single core block."""
    blocks = build_system_prompt(make_context())

    assert len(blocks) == 1
    text = blocks[0].text
    assert text.startswith("You are Claude Code")
    assert "# Environment" in text
    assert "Primary working directory: /work/project" in text
    assert "Opus 4.6" in text
    assert blocks[0].cache_control is None


def test_append_prompt_goes_to_project_block():
    """Test that appended instructions form the second block."""
    blocks = build_system_prompt(make_context(append_prompt="Always use tabs."))

    assert len(blocks) == 2
    assert blocks[1].text == "Always use tabs."


def test_git_status_block():
    """Test the optional git status block."""
    blocks = build_system_prompt(make_context(git_status="On branch main"))

    assert blocks[-1].text == "gitStatus: On branch main"


def test_registered_sections():
    """Test registering sections and resetting the registry."""
    register_core_section(lambda ctx: "# Extra core")
    register_project_section(lambda ctx: f"Project at {ctx.cwd}")
    register_project_section(lambda ctx: "")

    blocks = build_system_prompt(make_context())
    assert blocks[0].text.endswith("# Extra core")
    assert blocks[1].text == "Project at /work/project"

    reset_registry()
    assert len(build_system_prompt(make_context())) == 1


def test_context_message_format():
    """Test the exact system-reminder layout."""
    message = build_context_message("rules", "Today's date is 2026-01-02.")

    assert message == (
        "<system-reminder>\n"
        "As you answer the user's questions, you can use the following context:\n"
        "# claudeMd\nrules\n"
        "# currentDate\nToday's date is 2026-01-02.\n"
        "\n"
        "      IMPORTANT: this context may or may not be relevant to your tasks. "
        "You should not respond to this context unless it is highly relevant to your task.\n"
        "</system-reminder>\n"
    )


def test_context_message_empty():
    """Test that no context yields an empty message."""
    assert build_context_message() == ""


def test_format_current_date():
    """Test the date line."""
    assert format_current_date(date(2026, 3, 4)) == "Today's date is 2026-03-04."


def test_format_claude_md():
    """Test the preamble and per-file annotations."""
    text = format_claude_md([
        ClaudeMDEntry("/home/u/.claude/CLAUDE.md", "User", "be brief"),
        ClaudeMDEntry("/repo/CLAUDE.md", "Project", "use pytest"),
    ])

    assert text.startswith(CLAUDE_MD_PREAMBLE)
    assert "Contents of /home/u/.claude/CLAUDE.md (user's private global instructions for all projects):\n\nbe brief" in text
    assert "Contents of /repo/CLAUDE.md (project instructions, checked into the codebase):\n\nuse pytest" in text
    assert format_claude_md([]) == ""


def test_load_claude_md_entries(tmp_path):
    """Test discovery order of user and project CLAUDE.md files."""
    root = tmp_path.resolve()
    home = root / "home"
    (home / ".claude").mkdir(parents=True)
    (home / ".claude" / "CLAUDE.md").write_text("user rules\n")

    repo = root / "repo"
    sub = repo / "sub"
    (sub / ".claude").mkdir(parents=True)
    (repo / "CLAUDE.md").write_text("repo rules")
    (sub / "CLAUDE.md").write_text("sub rules")
    (sub / ".claude" / "CLAUDE.md").write_text("dot rules")

    entries = [e for e in load_claude_md_entries(str(sub), home=str(home)) if e.path.startswith(str(root))]

    assert [(e.kind, e.content) for e in entries] == [
        ("User", "user rules"),
        ("Project", "repo rules"),
        ("Project", "sub rules"),
        ("Project", "dot rules"),
    ]
