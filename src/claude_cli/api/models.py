"""
Model catalog: aliases, display names and capability predicates.
"""

from dataclasses import dataclass

MODEL_OPUS = "claude-opus-4-6"
MODEL_SONNET = "claude-sonnet-4-6"
MODEL_HAIKU = "claude-haiku-4-5-20251001"

DEFAULT_MODEL = MODEL_SONNET
FAST_MODE_MODEL_ALIAS = "opus"


@dataclass(frozen=True)
class ModelOption:
    """A model available for selection."""

    alias: str
    id: str
    display_name: str
    description: str


# Ordered as shown in a model picker.
AVAILABLE_MODELS: tuple[ModelOption, ...] = (
    ModelOption("sonnet", MODEL_SONNET, "Sonnet 4.6", "Best for everyday tasks (default)"),
    ModelOption("opus", MODEL_OPUS, "Opus 4.6", "Most capable for complex work"),
    ModelOption("haiku", MODEL_HAIKU, "Haiku 4.5", "Fastest for quick answers"),
)

MODEL_ALIASES: dict[str, str] = {opt.alias: opt.id for opt in AVAILABLE_MODELS}


def resolve_model_alias(model: str) -> str:
    """Resolve an alias to its full model ID; unknown strings pass through."""
    return MODEL_ALIASES.get(model, model)


def display_name(model: str) -> str:
    """Friendly name for a model ID or alias."""
    for opt in AVAILABLE_MODELS:
        if model in (opt.id, opt.alias):
            return opt.display_name
    return model


def _contains_any(model: str, needles: tuple[str, ...]) -> bool:
    lowered = model.lower()
    return any(n in lowered for n in needles)


def supports_thinking(model: str) -> bool:
    return _contains_any(model, ("opus-4", "sonnet-4"))


def supports_adaptive_thinking(model: str) -> bool:
    return _contains_any(model, ("opus-4-6", "sonnet-4-6"))


def is_fast_eligible(model: str) -> bool:
    return _contains_any(model, ("opus-4-6",))
