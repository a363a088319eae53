"""LSP message framing with Content-Length headers.

This module implements the LSP base protocol framing:
- Header parsing (Content-Length required, other headers tolerated)
- Message reading on top of an asyncio.StreamReader, which keeps any
  bytes read past the current message for the next call
- Message writing with Content-Length framing, flushed before returning

LSP Header Format:
    Content-Length: <length>\r\n
    [Content-Type: <type>]\r\n
    \r\n
    <json-rpc-message>

The Content-Length header is required and specifies the byte count
of the UTF-8 encoded JSON body. Headers are separated from the body
by a blank line.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from lspcall.errors import FramingError, TransportError
from lspcall.logging import TRACE, get_logger

# Header constants
CONTENT_LENGTH = "Content-Length"
HEADER_ENCODING = "ascii"
CONTENT_ENCODING = "utf-8"
CRLF = b"\r\n"

DEFAULT_MAX_MESSAGE_SIZE = 10 * 1024 * 1024  # 10 MB

_log = get_logger("transport")


def parse_header(header_bytes: bytes) -> dict[str, str]:
    """Parse LSP headers from raw bytes.

    Args:
        header_bytes: Raw header bytes (without the blank separator line).
            Should contain lines like "Content-Length: 123\r\nContent-Type: ..."

    Returns:
        Dictionary mapping header names to values. Content-Length is stored
        under its canonical spelling whatever case it arrived in; any other
        header is kept as received.

    Raises:
        FramingError: If headers are malformed or Content-Length is missing/invalid.

    Example:
        >>> header = b"Content-Length: 42\\r\\nContent-Type: application/json"
        >>> parse_header(header)
        {'Content-Length': '42', 'Content-Type': 'application/json'}
    """
    headers: dict[str, str] = {}

    try:
        header_text = header_bytes.decode(HEADER_ENCODING)
    except UnicodeDecodeError as e:
        raise FramingError(f"Header contains non-ASCII characters: {e}") from e

    for line in header_text.splitlines():
        if not line.strip():
            continue

        # Each header line is "Name: Value"
        colon_pos = line.find(":")
        if colon_pos == -1:
            raise FramingError(f"Malformed header line (no colon): {line!r}")

        name = line[:colon_pos].strip()
        value = line[colon_pos + 1 :].strip()

        if not name:
            raise FramingError(f"Empty header name in line: {line!r}")

        if name.lower() == CONTENT_LENGTH.lower():
            name = CONTENT_LENGTH
        headers[name] = value

    if CONTENT_LENGTH not in headers:
        raise FramingError("no Content-Length header found")

    content_length(headers)
    return headers


def content_length(headers: dict[str, str]) -> int:
    """Return the validated body length declared by parsed headers."""
    raw = headers.get(CONTENT_LENGTH)
    if raw is None:
        raise FramingError("no Content-Length header found")

    # Plain decimal digits only; int() would also take "+5", "1_0" or "٣"
    if raw.startswith("-") and raw[1:].isascii() and raw[1:].isdigit():
        raise FramingError(f"Negative Content-Length: {raw}")
    if not (raw.isascii() and raw.isdigit()):
        raise FramingError(f"Invalid Content-Length value: {raw!r}")

    return int(raw)


async def _read_header_block(reader: asyncio.StreamReader) -> bytes:
    """Read header lines up to and excluding the blank separator line."""
    lines: list[bytes] = []

    while True:
        try:
            line = await reader.readline()
        except ValueError as e:
            # StreamReader.readline reports a limit overrun as ValueError
            raise FramingError(f"Header line too long: {e}") from e
        except OSError as e:
            raise TransportError(f"Failed to read header line: {e}") from e

        if not line.endswith(b"\n"):
            if lines or line:
                raise TransportError("Unexpected EOF while reading headers")
            raise TransportError("Stream closed before a message was received")

        stripped = line.rstrip(b"\r\n")
        if not stripped:
            # Empty line signals end of headers
            return CRLF.join(lines)

        lines.append(stripped)


async def read_message(
    reader: asyncio.StreamReader,
    *,
    max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
) -> dict[str, Any]:
    """Read a single LSP message from the stream.

    Blocks until a complete message is available. Header lines may end in
    CRLF or a bare LF.

    Args:
        reader: Async stream reader to read from.
        max_message_size: Maximum allowed message size in bytes.
            Prevents memory exhaustion from malformed Content-Length.

    Returns:
        Parsed JSON-RPC message as a dictionary.

    Raises:
        FramingError: If message framing is invalid or JSON parsing fails.
        TransportError: If the stream ends before a complete message arrives.
    """
    header_bytes = await _read_header_block(reader)
    headers = parse_header(header_bytes)
    length = content_length(headers)

    if length > max_message_size:
        raise FramingError(f"Message size {length} exceeds maximum {max_message_size}")

    try:
        body_bytes = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise TransportError(
            f"Incomplete message body: expected {length} bytes, got {len(e.partial)}"
        ) from e
    except OSError as e:
        raise TransportError(f"Failed to read message body: {e}") from e

    _log.log(TRACE, "<-- %s", body_bytes.decode(CONTENT_ENCODING, errors="replace"))

    try:
        content = body_bytes.decode(CONTENT_ENCODING)
    except UnicodeDecodeError as e:
        raise FramingError(f"Invalid UTF-8 in message body: {e}") from e

    try:
        message = json.loads(content)
    except json.JSONDecodeError as e:
        raise FramingError(f"Invalid JSON in message body: {e}") from e

    if not isinstance(message, dict):
        raise FramingError(f"JSON-RPC message must be an object, got {type(message).__name__}")

    return message


def encode_message(msg: dict[str, Any]) -> bytes:
    """Serialize a message into its framed wire form.

    The header counts bytes of the UTF-8 body, not characters.

    Raises:
        FramingError: If the message cannot be serialized to JSON.
    """
    try:
        body = json.dumps(msg, separators=(",", ":"), ensure_ascii=False)
        body_bytes = body.encode(CONTENT_ENCODING)
    except (TypeError, ValueError) as e:
        raise FramingError(f"Message cannot be serialized to JSON: {e}") from e

    header = f"{CONTENT_LENGTH}: {len(body_bytes)}\r\n\r\n"
    return header.encode(HEADER_ENCODING) + body_bytes


async def write_message(writer: asyncio.StreamWriter, msg: dict[str, Any]) -> None:
    """Write a JSON-RPC message with Content-Length framing and flush it.

    The server may be blocked waiting for this message while we wait for its
    reply, so the write is always drained before returning.

    Raises:
        FramingError: If the message cannot be serialized to JSON.
        TransportError: If the stream is closed or the write fails.

    Example:
        >>> await write_message(writer, {
        ...     "jsonrpc": "2.0",
        ...     "id": 1,
        ...     "method": "shutdown",
        ... })
    """
    data = encode_message(msg)

    if writer.is_closing():
        raise TransportError("Cannot write message: stream is closed")

    _log.log(TRACE, "--> %s", data.decode(CONTENT_ENCODING, errors="replace"))

    try:
        # Write complete message atomically (header + body)
        writer.write(data)
        await writer.drain()
    except OSError as e:
        raise TransportError(f"Failed to write message: {e}") from e
