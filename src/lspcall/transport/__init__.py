"""LSP base-protocol transport for lspcall."""

from lspcall.transport.framing import (
    content_length,
    encode_message,
    parse_header,
    read_message,
    write_message,
)

__all__ = [
    "content_length",
    "encode_message",
    "parse_header",
    "read_message",
    "write_message",
]
