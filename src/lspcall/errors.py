"""Exception hierarchy for lspcall.

Every failure the client can surface derives from LSPClientError so callers
can catch the whole family in one place while still telling the kinds apart.
"""

from __future__ import annotations

from typing import Any


class LSPClientError(Exception):
    """Base class for all lspcall errors."""


class SpawnError(LSPClientError):
    """The language server process could not be started or its pipes opened."""


class TransportError(LSPClientError, OSError):
    """Reading from or writing to the server's streams failed.

    Also raised when the server closes its stdout before or in the middle of
    a message.
    """


class FramingError(LSPClientError):
    """A message on the wire was malformed.

    Raised when:
    - Content-Length header is missing
    - Content-Length value is not a valid non-negative integer
    - A header line is malformed
    - The body is not valid UTF-8 JSON or is not a JSON object
    """


class ProtocolError(LSPClientError):
    """The server answered with an error object, or with a malformed response."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.data = data


class DeadlineExceeded(LSPClientError, TimeoutError):
    """No matching response arrived before the deadline."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f"No response to {method!r} within {timeout:.3g}s")
        self.method = method
        self.timeout = timeout


class SessionStateError(LSPClientError):
    """An operation was attempted in a session state that does not allow it."""


class ConfigError(LSPClientError):
    """The configuration file could not be parsed."""


class ParamsError(LSPClientError):
    """Request parameters could not be loaded."""
