"""
Selection of the request ``thinking`` field for a model.
"""

from ..api.models import supports_adaptive_thinking, supports_thinking
from ..api.types import ThinkingConfig
from ..config import DEFAULT_MAX_TOKENS, Settings, get_settings


def select_thinking_config(
    model: str,
    settings: Settings | None = None,
    disabled: bool = False,
    default_max_tokens: int = DEFAULT_MAX_TOKENS,
) -> ThinkingConfig | None:
    """Pick the thinking config to send, or None to omit the field.

    Precedence: explicit disable, then ``MAX_THINKING_TOKENS``, then model
    capability (adaptive before a fixed budget).
    """
    settings = settings or get_settings()

    if disabled or settings.thinking_disabled:
        return None

    if settings.max_thinking_tokens is not None:
        if settings.max_thinking_tokens <= 0:
            return None
        return ThinkingConfig.enabled(settings.max_thinking_tokens)

    if supports_adaptive_thinking(model):
        return ThinkingConfig.adaptive()
    if supports_thinking(model):
        return ThinkingConfig.enabled(default_max_tokens - 1)
    return None
