"""JSON-RPC message types exchanged with a language server.

Params, results and error data are typed as pydantic's JsonValue so every
payload stays a plain, fully serializable JSON tree.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError

from lspcall.errors import ProtocolError

JSONRPC_VERSION = "2.0"


class LspModel(BaseModel):
    """Base model for protocol types with populate_by_name enabled."""

    model_config = ConfigDict(populate_by_name=True)


class ErrorDetail(LspModel):
    """Error object carried by a failed response."""

    code: int
    message: str
    data: JsonValue = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            d["data"] = self.data
        return d


class Request(LspModel):
    """A request awaiting exactly one response with the same id."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int
    method: str
    params: JsonValue = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dictionary (params omitted when absent)."""
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        return d


class Notification(LspModel):
    """A one-way message: no id, no response."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: JsonValue = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        return d


class Response(LspModel):
    """A reply to a request.

    A well-formed response carries exactly one of ``result`` and ``error``.
    ``result`` may legitimately be JSON null (``shutdown`` answers that way),
    so presence is tracked separately from the value.
    """

    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    result: JsonValue = None
    error: ErrorDetail | None = None

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def is_well_formed(self) -> bool:
        return self.has_result != self.has_error

    def raise_for_error(self) -> None:
        """Raise ProtocolError if the server answered with an error object."""
        if self.error is not None:
            raise ProtocolError(
                f"[{self.error.code}] {self.error.message}",
                code=self.error.code,
                data=self.error.data,
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        d: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.has_result:
            d["result"] = self.result
        if self.error is not None:
            d["error"] = self.error.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Response:
        """Parse a decoded message into a Response.

        Raises:
            ProtocolError: If the fields do not have the expected types.
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ProtocolError(f"Malformed response: {e}") from e


def is_incoming_call(message: dict[str, Any]) -> bool:
    """True for notifications and server-to-client requests.

    Anything carrying a non-empty ``method`` is a call rather than a reply,
    whatever its id.
    """
    method = message.get("method")
    return isinstance(method, str) and method != ""


class ClientInfo(LspModel):
    """Client identification."""

    name: str
    version: str | None = None


class InitializeParams(LspModel):
    """Parameters of the ``initialize`` request."""

    process_id: int | None = Field(default=None, alias="processId")
    root_uri: str | None = Field(default=None, alias="rootUri")
    capabilities: dict[str, JsonValue] = Field(default_factory=dict)
    client_info: ClientInfo | None = Field(default=None, alias="clientInfo")

    def to_dict(self) -> dict[str, Any]:
        d = self.model_dump(by_alias=True, exclude_none=True)
        # processId and rootUri are nullable but required by the protocol
        d.setdefault("processId", None)
        d.setdefault("rootUri", None)
        return d


class InitializeResult(LspModel):
    """Result of a successful ``initialize`` request."""

    capabilities: dict[str, JsonValue] = Field(default_factory=dict)
    server_info: dict[str, JsonValue] | None = Field(default=None, alias="serverInfo")


def default_client_capabilities() -> dict[str, JsonValue]:
    """Capabilities advertised during initialization.

    Completion (with snippets), hover (markdown or plain text), document
    symbols and workspace symbols.
    """
    return {
        "textDocument": {
            "completion": {
                "completionItem": {
                    "snippetSupport": True,
                },
            },
            "hover": {
                "contentFormat": ["markdown", "plaintext"],
            },
            "documentSymbol": {},
            "workspaceSymbol": {},
        },
        "workspace": {
            "symbol": {},
        },
    }
