"""
HTTP client for the Claude Messages API.

Issues one POST per call, streams the SSE body through the parser and
returns the assembled MessageResponse.
"""

import asyncio
import json
from typing import Any

import httpx
import structlog

from ..config import DEFAULT_BASE_URL, DEFAULT_MAX_TOKENS, Settings
from .assembler import ResponseAssembler
from .auth import TokenSource, supports_invalidation, token_source_from_settings
from .errors import (
    APIStatusError,
    RequestEncodeError,
    StreamParseError,
    TokenFetchError,
    TransportError,
)
from .models import DEFAULT_MODEL, resolve_model_alias
from .streaming import parse_sse_stream
from .types import CreateMessageRequest, MessageResponse

logger = structlog.get_logger()

API_VERSION = "2023-06-01"
BASE_BETAS = ("claude-code-20250219", "oauth-2025-04-20")
FAST_MODE_BETA = "fast-mode-2026-02-01"
INTERLEAVED_THINKING_BETA = "interleaved-thinking-2025-05-14"

MAX_AUTH_ATTEMPTS = 2


class MessagesClient:
    """Streaming client for POST /v1/messages."""

    def __init__(
        self,
        token_source: TokenSource,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        version: str = "dev",
        custom_headers: dict[str, str] | None = None,
        extra_betas: list[str] | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 600.0,
        server_error_retries: int = 0,
        retry_backoff_seconds: float = 1.0,
    ):
        self.token_source = token_source
        self.base_url = base_url.rstrip("/")
        self._model = resolve_model_alias(model)
        self.max_tokens = max_tokens
        self.version = version
        self.custom_headers = dict(custom_headers or {})
        self.extra_betas = list(extra_betas or [])
        self.server_error_retries = server_error_retries
        self.retry_backoff_seconds = retry_backoff_seconds

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        token_source: TokenSource | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "MessagesClient":
        return cls(
            token_source=token_source or token_source_from_settings(settings),
            base_url=settings.anthropic_base_url,
            model=settings.model,
            max_tokens=settings.max_tokens,
            version=settings.version,
            custom_headers=settings.custom_headers,
            extra_betas=settings.extra_betas,
            http_client=http_client,
            timeout=settings.request_timeout_seconds,
            server_error_retries=settings.server_error_retries,
            retry_backoff_seconds=settings.retry_backoff_seconds,
        )

    @property
    def model(self) -> str:
        return self._model

    def set_model(self, model: str) -> None:
        self._model = resolve_model_alias(model)

    @property
    def url(self) -> str:
        return f"{self.base_url}/v1/messages?beta=true"

    async def __aenter__(self) -> "MessagesClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    def collect_betas(self, request: CreateMessageRequest) -> list[str]:
        """Beta values for a request, in header order."""
        betas = list(BASE_BETAS)
        if request.speed == "fast":
            betas.append(FAST_MODE_BETA)
        if request.thinking is not None and request.thinking.type == "enabled":
            betas.append(INTERLEAVED_THINKING_BETA)
        betas.extend(self.extra_betas)
        return betas

    def build_headers(self, token: str, betas: list[str]) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "anthropic-version": API_VERSION,
            "anthropic-beta": ",".join(betas),
            "x-app": "cli",
            "User-Agent": f"claude-code/{self.version}",
            "Accept": "application/json",
        }
        headers.update(self.custom_headers)
        return headers

    def _prepare(self, request: CreateMessageRequest, stream: bool) -> CreateMessageRequest:
        """Copy the request with client defaults applied."""
        return request.model_copy(
            update={
                "model": resolve_model_alias(request.model or self._model),
                "max_tokens": request.max_tokens or self.max_tokens,
                "stream": stream,
            }
        )

    def _encode(self, request: CreateMessageRequest) -> bytes:
        try:
            return json.dumps(request.to_wire()).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise RequestEncodeError(f"marshaling request: {e}") from e

    async def create_message_stream(
        self,
        request: CreateMessageRequest,
        handler: Any | None = None,
    ) -> MessageResponse:
        """Send a streaming request, dispatching events to ``handler`` as they arrive."""
        req = self._prepare(request, stream=True)
        betas = self.collect_betas(req)
        body = self._encode(req)

        response = await self._send(body, betas)
        try:
            if response.status_code != 200:
                await self._raise_status(response)

            assembler = ResponseAssembler(handler)
            try:
                await parse_sse_stream(response.aiter_bytes(), assembler)
            except httpx.HTTPError as e:
                raise TransportError(f"reading response stream: {e}") from e
        finally:
            await response.aclose()

        return self._finish(assembler)

    def _finish(self, assembler: ResponseAssembler) -> MessageResponse:
        result = assembler.response
        if assembler.api_errors and (result is None or result.stop_reason is None):
            raise assembler.api_errors[0]
        if result is None:
            raise StreamParseError("stream ended before message_start")
        logger.debug(
            "Message stream complete",
            model=result.model,
            stop_reason=result.stop_reason,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
        )
        return result

    async def create_message(self, request: CreateMessageRequest) -> MessageResponse:
        """Send a non-streaming request and decode the single JSON response."""
        req = self._prepare(request, stream=False)
        betas = self.collect_betas(req)
        body = self._encode(req)

        response = await self._send(body, betas)
        try:
            if response.status_code != 200:
                await self._raise_status(response)
            try:
                raw = await response.aread()
            except httpx.HTTPError as e:
                raise TransportError(f"reading response: {e}") from e
        finally:
            await response.aclose()

        try:
            return MessageResponse.model_validate_json(raw)
        except ValueError as e:
            raise StreamParseError(f"decoding response: {e}") from e

    async def _raise_status(self, response: httpx.Response) -> None:
        try:
            body = (await response.aread()).decode("utf-8", errors="replace")
        except httpx.HTTPError as e:
            body = f"<unreadable body: {e}>"
        logger.warning("API request failed", status_code=response.status_code)
        raise APIStatusError(response.status_code, body)

    async def _send(self, body: bytes, betas: list[str]) -> httpx.Response:
        """Send with 5xx backoff (if configured) around the 401 retry."""
        server_attempt = 0
        while True:
            response = await self._send_authenticated(body, betas)
            if 500 <= response.status_code < 600 and server_attempt < self.server_error_retries:
                await response.aclose()
                delay = self.retry_backoff_seconds * (2 ** server_attempt)
                logger.warning(
                    "Server error, retrying",
                    status_code=response.status_code,
                    attempt=server_attempt + 1,
                    delay=delay,
                )
                await asyncio.sleep(delay)
                server_attempt += 1
                continue
            return response

    async def _send_authenticated(self, body: bytes, betas: list[str]) -> httpx.Response:
        """At most two attempts; a 401 is retried once if the token can be invalidated."""
        response: httpx.Response | None = None
        for attempt in range(MAX_AUTH_ATTEMPTS):
            token = await self._get_token()
            http_request = self.http_client.build_request(
                "POST", self.url, content=body, headers=self.build_headers(token, betas)
            )
            try:
                response = await self.http_client.send(http_request, stream=True)
            except httpx.HTTPError as e:
                raise TransportError(f"sending request: {e}") from e

            if (
                response.status_code == 401
                and attempt == 0
                and supports_invalidation(self.token_source)
            ):
                await response.aclose()
                logger.info("Received 401, refreshing token and retrying")
                self.token_source.invalidate_token()  # type: ignore[attr-defined]
                continue
            return response

        assert response is not None
        return response

    async def _get_token(self) -> str:
        try:
            return await self.token_source.get_access_token()
        except TokenFetchError:
            raise
        except Exception as e:
            raise TokenFetchError(f"getting access token: {e}") from e
