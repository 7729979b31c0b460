"""
Messages API layer.

- Wire types and the model catalog
- SSE parsing and response assembly
- Streaming HTTP client with 401 retry
"""

from .auth import RefreshableTokenSource, StaticTokenSource, TokenSource, token_source_from_settings
from .client import MessagesClient
from .errors import (
    APIEventError,
    APIStatusError,
    ClaudeAPIError,
    MaxTurnsExceeded,
    ProtocolViolation,
    RequestEncodeError,
    StreamParseError,
    TokenFetchError,
    TransportError,
)
from .streaming import NoOpStreamHandler, StreamHandler, parse_sse_stream
from .types import CreateMessageRequest, Message, MessageResponse, SystemBlock, ToolDefinition

__all__ = [
    "MessagesClient",
    "TokenSource",
    "StaticTokenSource",
    "RefreshableTokenSource",
    "token_source_from_settings",
    "StreamHandler",
    "NoOpStreamHandler",
    "parse_sse_stream",
    "CreateMessageRequest",
    "Message",
    "MessageResponse",
    "SystemBlock",
    "ToolDefinition",
    "ClaudeAPIError",
    "TokenFetchError",
    "RequestEncodeError",
    "TransportError",
    "APIStatusError",
    "StreamParseError",
    "APIEventError",
    "ProtocolViolation",
    "MaxTurnsExceeded",
]
