"""Root pytest configuration for all tests."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

FAKE_SERVER = Path(__file__).parent / "resources" / "fake_lsp_server.py"


class MockTransport:
    """Write transport that captures everything written to it."""

    def __init__(self) -> None:
        self.written = bytearray()
        self.protocol: asyncio.StreamReaderProtocol | None = None
        self._closing = False

    def get_extra_info(self, name: str, default=None):
        return default

    def is_closing(self) -> bool:
        return self._closing

    def write(self, data: bytes) -> None:
        self.written.extend(data)

    def close(self) -> None:
        if self._closing:
            return
        self._closing = True
        if self.protocol is not None:
            self.protocol.connection_lost(None)


def frame(message: dict | bytes) -> bytes:
    """Frame a message the way a server would put it on the wire."""
    body = message if isinstance(message, bytes) else json.dumps(message).encode("utf-8")
    return f"Content-Length: {len(body)}\r\n\r\n".encode("ascii") + body


@pytest.fixture
def make_reader() -> Callable[..., asyncio.StreamReader]:
    """Create a StreamReader preloaded with test data."""

    def _make_reader(data: bytes = b"", eof: bool = True) -> asyncio.StreamReader:
        reader = asyncio.StreamReader()
        if data:
            reader.feed_data(data)
        if eof:
            reader.feed_eof()
        return reader

    return _make_reader


@pytest.fixture
def make_writer() -> Callable[[], tuple[asyncio.StreamWriter, MockTransport]]:
    """Create a StreamWriter whose output is captured in transport.written."""

    def _make_writer() -> tuple[asyncio.StreamWriter, MockTransport]:
        reader = asyncio.StreamReader()
        transport = MockTransport()
        protocol = asyncio.StreamReaderProtocol(reader)
        transport.protocol = protocol
        writer = asyncio.StreamWriter(transport, protocol, reader, asyncio.get_running_loop())
        return writer, transport

    return _make_writer


@pytest.fixture
def fake_server() -> list[str]:
    """Command line that runs the fake language server."""
    return [sys.executable, str(FAKE_SERVER)]
