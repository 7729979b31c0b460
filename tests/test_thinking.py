"""
Tests for thinking configuration selection.
"""

from claude_cli.agent.thinking import select_thinking_config
from claude_cli.api.models import MODEL_HAIKU, MODEL_OPUS


def test_adaptive_for_current_models(settings):
    """Test that 4.6 models get adaptive thinking."""
    config = select_thinking_config(MODEL_OPUS, settings)
    assert config.type == "adaptive"
    assert config.budget_tokens is None


def test_fixed_budget_for_older_models(settings):
    """Test that thinking-capable older models get max_tokens - 1."""
    config = select_thinking_config("claude-sonnet-4-5", settings, default_max_tokens=8000)
    assert config.type == "enabled"
    assert config.budget_tokens == 7999


def test_none_for_unsupported_models(settings):
    """Test that models without thinking omit the field."""
    assert select_thinking_config(MODEL_HAIKU, settings) is None


def test_disabled_wins(settings):
    """Test explicit and environment disables."""
    assert select_thinking_config(MODEL_OPUS, settings, disabled=True) is None
    settings.claude_code_disable_thinking = "1"
    settings.max_thinking_tokens = 5000
    assert select_thinking_config(MODEL_OPUS, settings) is None


def test_max_thinking_tokens_override(settings):
    """Test that MAX_THINKING_TOKENS sets a fixed budget on any model."""
    settings.max_thinking_tokens = 5000
    config = select_thinking_config(MODEL_HAIKU, settings)
    assert config.type == "enabled"
    assert config.budget_tokens == 5000


def test_zero_max_thinking_tokens_disables(settings):
    """Test that a non-positive budget omits the field."""
    settings.max_thinking_tokens = 0
    assert select_thinking_config(MODEL_OPUS, settings) is None
