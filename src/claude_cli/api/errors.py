"""
Error taxonomy for the Messages API client and the agent loop.

Tool failures are not represented here: they travel in-band as
``tool_result`` blocks with ``is_error`` set.
"""


class ClaudeAPIError(Exception):
    """Base class for all errors raised by claude_cli."""


class TokenFetchError(ClaudeAPIError):
    """Failure to acquire a bearer token."""


class RequestEncodeError(ClaudeAPIError):
    """The request could not be serialised to JSON."""


class TransportError(ClaudeAPIError):
    """Network or I/O failure while talking to the API."""


class APIStatusError(ClaudeAPIError):
    """The API answered with a non-200 status that was not retried."""

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API error ({status_code}): {body}")


class StreamParseError(ClaudeAPIError):
    """A malformed SSE frame or JSON payload."""


class APIEventError(ClaudeAPIError):
    """The server emitted an ``error`` event inside the stream."""

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        self.message = message
        super().__init__(f"API error: {error_type}: {message}")


class ProtocolViolation(ClaudeAPIError):
    """The server response contradicts the protocol."""


class MaxTurnsExceeded(ClaudeAPIError):
    """The agent loop hit its configured turn limit."""

    def __init__(self, max_turns: int):
        self.max_turns = max_turns
        super().__init__(f"Reached maximum number of turns ({max_turns})")
