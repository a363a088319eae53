"""lspcall - send one request to a language server over stdio."""

__version__ = "0.1.0"

from lspcall.client import CloseResult, LSPClient, SessionState  # noqa: E402
from lspcall.errors import (  # noqa: E402
    DeadlineExceeded,
    FramingError,
    LSPClientError,
    ProtocolError,
    SessionStateError,
    SpawnError,
    TransportError,
)
from lspcall.protocol.messages import ErrorDetail, Notification, Request, Response  # noqa: E402

__all__ = [
    "CloseResult",
    "DeadlineExceeded",
    "ErrorDetail",
    "FramingError",
    "LSPClient",
    "LSPClientError",
    "Notification",
    "ProtocolError",
    "Request",
    "Response",
    "SessionState",
    "SessionStateError",
    "SpawnError",
    "TransportError",
]
