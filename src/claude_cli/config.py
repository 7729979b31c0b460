"""
Configuration management for claude-cli.

Uses pydantic-settings for environment variable parsing and validation.
All process-wide environment toggles (prompt caching, thinking, compaction)
are read here so the rest of the package never touches os.environ directly.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://api.anthropic.com"
DEFAULT_MAX_TOKENS = 16384


def env_truthy(value: str | None) -> bool:
    """Return True for "1" or a case-insensitive "true"."""
    if value is None:
        return False
    return value == "1" or value.lower() == "true"


def parse_custom_headers(raw: str) -> dict[str, str]:
    """Parse the ``header1:value1,header2:value2`` format."""
    headers: dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        idx = pair.find(":")
        if idx <= 0:
            continue
        key = pair[:idx].strip()
        if key:
            headers[key] = pair[idx + 1:].strip()
    return headers


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "claude-cli"
    version: str = "dev"
    log_level: str = "WARNING"

    # API
    anthropic_base_url: str = Field(default=DEFAULT_BASE_URL, description="Messages API base URL")
    anthropic_api_key: str = Field(default="", description="API key used as bearer token")
    claude_code_oauth_token: str = Field(default="", description="OAuth access token")
    model: str = Field(default="sonnet", description="Model alias or full model ID")
    max_tokens: int = DEFAULT_MAX_TOKENS
    request_timeout_seconds: float = 600.0
    server_error_retries: int = Field(default=0, description="Retries for 5xx responses")
    retry_backoff_seconds: float = 1.0
    anthropic_custom_headers: str = ""
    anthropic_betas: str = ""
    fast_mode: bool = False

    # Prompt caching
    disable_prompt_caching: str = ""
    disable_prompt_caching_opus: str = ""
    disable_prompt_caching_sonnet: str = ""
    disable_prompt_caching_haiku: str = ""

    # Thinking
    claude_code_disable_thinking: str = ""
    max_thinking_tokens: int | None = None

    # Compaction
    disable_compact: str = ""
    compact_model: str = ""

    # Hooks
    hook_timeout_seconds: float = 60.0

    @field_validator("max_thinking_tokens", mode="before")
    @classmethod
    def parse_max_thinking_tokens(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def custom_headers(self) -> dict[str, str]:
        """Extra headers from ANTHROPIC_CUSTOM_HEADERS."""
        if not self.anthropic_custom_headers:
            return {}
        return parse_custom_headers(self.anthropic_custom_headers)

    @property
    def extra_betas(self) -> list[str]:
        """User-specified betas from ANTHROPIC_BETAS."""
        return [b.strip() for b in self.anthropic_betas.split(",") if b.strip()]

    @property
    def thinking_disabled(self) -> bool:
        return env_truthy(self.claude_code_disable_thinking)

    @property
    def compaction_disabled(self) -> bool:
        return bool(self.disable_compact)

    def is_caching_enabled(self, model: str) -> bool:
        """Whether prompt caching applies to the given model."""
        if env_truthy(self.disable_prompt_caching):
            return False
        model_lower = model.lower()
        toggles = {
            "haiku": self.disable_prompt_caching_haiku,
            "sonnet": self.disable_prompt_caching_sonnet,
            "opus": self.disable_prompt_caching_opus,
        }
        for family, value in toggles.items():
            if env_truthy(value) and family in model_lower:
                return False
        return True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment.

    Intended for tests that patch environment variables.
    """
    get_settings.cache_clear()
