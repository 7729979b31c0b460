"""
Bearer token sources for the Messages API client.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

import structlog

from ..config import Settings
from .errors import TokenFetchError

logger = structlog.get_logger()


@runtime_checkable
class TokenSource(Protocol):
    """Supplies the bearer token for each request."""

    async def get_access_token(self) -> str: ...


@runtime_checkable
class InvalidatingTokenSource(TokenSource, Protocol):
    """A token source that can discard its cached token after a 401."""

    def invalidate_token(self) -> None: ...


class StaticTokenSource:
    """Always returns the same token."""

    def __init__(self, token: str):
        self.token = token

    async def get_access_token(self) -> str:
        if not self.token:
            raise TokenFetchError("no access token configured")
        return self.token


class RefreshableTokenSource:
    """Caches a token obtained from ``fetch`` and re-fetches after invalidation.

    Concurrent callers share one in-flight fetch.
    """

    def __init__(self, fetch: Callable[[], Awaitable[str]]):
        self._fetch = fetch
        self._token: str | None = None
        self._lock = asyncio.Lock()

    async def get_access_token(self) -> str:
        async with self._lock:
            if self._token is None:
                try:
                    token = await self._fetch()
                except TokenFetchError:
                    raise
                except Exception as e:
                    raise TokenFetchError(f"getting access token: {e}") from e
                if not token:
                    raise TokenFetchError("token fetch returned an empty token")
                self._token = token
                logger.debug("Access token refreshed")
            return self._token

    def invalidate_token(self) -> None:
        self._token = None
        logger.info("Access token invalidated")


def supports_invalidation(source: object) -> bool:
    return callable(getattr(source, "invalidate_token", None))


def token_source_from_settings(settings: Settings) -> StaticTokenSource:
    """Build a token source from ``CLAUDE_CODE_OAUTH_TOKEN`` or ``ANTHROPIC_API_KEY``."""
    token = settings.claude_code_oauth_token or settings.anthropic_api_key
    if not token:
        raise TokenFetchError(
            "no credentials found: set CLAUDE_CODE_OAUTH_TOKEN or ANTHROPIC_API_KEY"
        )
    return StaticTokenSource(token)
