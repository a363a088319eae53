"""JSON-RPC message types for the language server protocol."""

from lspcall.protocol.messages import (
    JSONRPC_VERSION,
    ClientInfo,
    ErrorDetail,
    InitializeParams,
    InitializeResult,
    Notification,
    Request,
    Response,
    default_client_capabilities,
    is_incoming_call,
)

__all__ = [
    "JSONRPC_VERSION",
    "ClientInfo",
    "ErrorDetail",
    "InitializeParams",
    "InitializeResult",
    "Notification",
    "Request",
    "Response",
    "default_client_capabilities",
    "is_incoming_call",
]
