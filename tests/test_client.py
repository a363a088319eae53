"""Tests for LSPClient request correlation and lifecycle over in-memory streams."""

from __future__ import annotations

import asyncio
import logging

import pytest

from conftest import frame
from lspcall.client import LSPClient, SessionState
from lspcall.errors import (
    DeadlineExceeded,
    FramingError,
    ProtocolError,
    SessionStateError,
    TransportError,
)
from lspcall.transport.framing import read_message


async def sent_messages(transport) -> list[dict]:
    """Decode every framed message the client wrote."""
    reader = asyncio.StreamReader()
    reader.feed_data(bytes(transport.written))
    reader.feed_eof()
    messages = []
    while not reader.at_eof():
        messages.append(await read_message(reader))
    return messages


class TestSendRequest:
    """Tests for request/response correlation."""

    async def test_returns_matching_response(self, make_reader, make_writer) -> None:
        writer, transport = make_writer()
        reader = make_reader(frame({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}}))
        client = LSPClient.from_streams(reader, writer)

        response = await client.send_request("test/echo", {"x": 1})

        assert response.id == 1
        assert response.result == {"ok": True}
        sent = await sent_messages(transport)
        assert sent == [{"jsonrpc": "2.0", "id": 1, "method": "test/echo", "params": {"x": 1}}]

    async def test_ids_are_sequential(self, make_reader, make_writer) -> None:
        """N requests get ids 1..N in call order."""
        writer, transport = make_writer()
        replies = b"".join(frame({"id": i, "result": i * 10}) for i in range(1, 6))
        client = LSPClient.from_streams(make_reader(replies), writer)

        results = [(await client.send_request("test/echo")).result for _ in range(5)]

        assert results == [10, 20, 30, 40, 50]
        sent = await sent_messages(transport)
        assert [m["id"] for m in sent] == [1, 2, 3, 4, 5]
        assert client.next_id == 6

    async def test_notifications_do_not_consume_ids(self, make_reader, make_writer) -> None:
        writer, transport = make_writer()
        client = LSPClient.from_streams(make_reader(frame({"id": 1, "result": None})), writer)

        await client.send_notification("initialized", {})
        await client.send_notification("textDocument/didOpen", {"textDocument": {}})
        await client.send_request("shutdown")

        sent = await sent_messages(transport)
        assert "id" not in sent[0]
        assert "id" not in sent[1]
        assert sent[2]["id"] == 1

    async def test_skips_notification_before_response(
        self, make_reader, make_writer, caplog
    ) -> None:
        """A notification is logged but never mistaken for the reply."""
        caplog.set_level(logging.DEBUG, logger="lspcall")
        writer, _ = make_writer()
        data = frame(
            {
                "jsonrpc": "2.0",
                "method": "textDocument/publishDiagnostics",
                "params": {"uri": "file:///a.py", "diagnostics": []},
            }
        ) + frame({"jsonrpc": "2.0", "id": 1, "result": [{"name": "main"}]})
        client = LSPClient.from_streams(make_reader(data), writer)

        response = await client.send_request("workspace/symbol", {"query": "main"})

        assert response.result == [{"name": "main"}]
        assert "textDocument/publishDiagnostics" in caplog.text

    async def test_skips_server_request_with_same_id(self, make_reader, make_writer) -> None:
        """A server-to-client request is not a reply even if its id matches."""
        writer, _ = make_writer()
        data = frame({"id": 1, "method": "window/workDoneProgress/create", "params": {}})
        data += frame({"id": 1, "result": "mine"})
        client = LSPClient.from_streams(make_reader(data), writer)

        response = await client.send_request("test/echo")

        assert response.result == "mine"

    async def test_discards_unexpected_ids(self, make_reader, make_writer, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="lspcall")
        writer, _ = make_writer()
        data = frame({"id": 99, "result": "stale"}) + frame({"id": 1, "result": "fresh"})
        client = LSPClient.from_streams(make_reader(data), writer)

        response = await client.send_request("test/echo")

        assert response.result == "fresh"
        assert "unexpected response id=99" in caplog.text

    async def test_boolean_id_does_not_match(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        data = frame({"id": True, "result": "wrong"}) + frame({"id": 1, "result": "right"})
        client = LSPClient.from_streams(make_reader(data), writer)

        assert (await client.send_request("test/echo")).result == "right"

    async def test_error_response_is_returned(self, make_reader, make_writer) -> None:
        """Error replies are returned, not raised."""
        writer, _ = make_writer()
        data = frame({"id": 1, "error": {"code": -32601, "message": "Method not found"}})
        client = LSPClient.from_streams(make_reader(data), writer)

        response = await client.send_request("no/such/method")

        assert response.error is not None
        assert response.error.code == -32601
        assert response.result is None

    async def test_reply_without_result_or_error_raises(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(frame({"id": 1})), writer)

        with pytest.raises(ProtocolError, match="exactly one of result and error"):
            await client.send_request("test/echo")

    async def test_framing_error_propagates(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(b"Content-Length: abc\r\n\r\n"), writer)

        with pytest.raises(FramingError):
            await client.send_request("test/echo")

    async def test_stream_closed_raises_transport_error(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(b""), writer)

        with pytest.raises(TransportError):
            await client.send_request("test/echo")


class TestDeadline:
    """Tests for deadline handling."""

    async def test_request_times_out(self, make_reader, make_writer) -> None:
        """A server that never answers yields DeadlineExceeded after the timeout."""
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(eof=False), writer)
        loop = asyncio.get_running_loop()

        start = loop.time()
        with pytest.raises(DeadlineExceeded) as excinfo:
            await client.send_request("workspace/symbol", {"query": "main"}, timeout=0.1)
        elapsed = loop.time() - start

        assert 0.09 <= elapsed < 2.0
        assert excinfo.value.method == "workspace/symbol"
        assert isinstance(excinfo.value, TimeoutError)

    async def test_session_is_desynchronized_after_timeout(
        self, make_reader, make_writer
    ) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(eof=False), writer)

        with pytest.raises(DeadlineExceeded):
            await client.send_request("test/hang", timeout=0.05)

        assert client.desynchronized
        with pytest.raises(SessionStateError, match="desynchronized"):
            await client.send_request("test/echo")

    async def test_session_deadline_applies(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(eof=False), writer)
        client.set_deadline(0.05)

        with pytest.raises(DeadlineExceeded):
            await client.send_request("test/hang", timeout=10)

    async def test_expired_deadline_sends_nothing(self, make_reader, make_writer) -> None:
        writer, transport = make_writer()
        client = LSPClient.from_streams(make_reader(eof=False), writer)
        client.set_deadline(0)

        with pytest.raises(DeadlineExceeded):
            await client.send_request("test/echo")

        assert transport.written == bytearray()
        assert client.next_id == 1
        assert not client.desynchronized


class TestInitialize:
    """Tests for the initialize handshake."""

    async def test_initialize_sends_initialized(self, make_reader, make_writer) -> None:
        """initialize is followed by an initialized notification without id."""
        writer, transport = make_writer()
        reader = make_reader(frame({"id": 1, "result": {"capabilities": {}}}))
        client = LSPClient.from_streams(reader, writer)

        result = await client.initialize("file:///tmp/proj")

        assert result.capabilities == {}
        sent = await sent_messages(transport)
        assert [m["method"] for m in sent] == ["initialize", "initialized"]
        init = sent[0]
        assert init["id"] == 1
        assert init["params"]["rootUri"] == "file:///tmp/proj"
        assert isinstance(init["params"]["processId"], int)
        assert "textDocument" in init["params"]["capabilities"]
        assert "id" not in sent[1]

    async def test_initialize_records_server_info(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        reply = {
            "id": 1,
            "result": {
                "capabilities": {"hoverProvider": True},
                "serverInfo": {"name": "fake-lsp"},
            },
        }
        client = LSPClient.from_streams(make_reader(frame(reply)), writer)

        await client.initialize("file:///tmp/proj")

        assert client.server_capabilities == {"hoverProvider": True}
        assert client.server_info == {"name": "fake-lsp"}

    async def test_initialize_error_raises(self, make_reader, make_writer) -> None:
        writer, transport = make_writer()
        reply = {"id": 1, "error": {"code": -32603, "message": "cannot open workspace"}}
        client = LSPClient.from_streams(make_reader(frame(reply)), writer)

        with pytest.raises(ProtocolError, match=r"\[-32603\]: cannot open workspace") as excinfo:
            await client.initialize("file:///tmp/proj")

        assert excinfo.value.code == -32603
        sent = await sent_messages(transport)
        assert [m["method"] for m in sent] == ["initialize"]
        # A failed initialize leaves the session usable
        assert client.state is SessionState.RUNNING


class TestClose:
    """Tests for close on stream-only sessions."""

    async def test_close_sends_shutdown_then_exit(self, make_reader, make_writer) -> None:
        writer, transport = make_writer()
        client = LSPClient.from_streams(make_reader(frame({"id": 1, "result": None})), writer)

        result = await client.close()

        assert result.ok
        assert client.state is SessionState.CLOSED
        sent = await sent_messages(transport)
        assert [m["method"] for m in sent] == ["shutdown", "exit"]
        assert "id" not in sent[1]
        assert transport.is_closing()

    async def test_close_collects_shutdown_failure(self, make_reader, make_writer) -> None:
        """A missing shutdown reply is recorded, and exit is still sent."""
        writer, transport = make_writer()
        client = LSPClient.from_streams(make_reader(b""), writer)

        result = await client.close()

        assert not result.ok
        assert [step for step, _ in result.failures] == ["shutdown"]
        assert isinstance(result.failures[0][1], TransportError)
        sent = await sent_messages(transport)
        assert [m["method"] for m in sent] == ["shutdown", "exit"]

    async def test_close_skips_shutdown_when_desynchronized(
        self, make_reader, make_writer
    ) -> None:
        writer, transport = make_writer()
        client = LSPClient.from_streams(make_reader(eof=False), writer)
        with pytest.raises(DeadlineExceeded):
            await client.send_request("test/hang", timeout=0.05)

        result = await client.close()

        assert result.ok
        sent = await sent_messages(transport)
        assert [m["method"] for m in sent] == ["test/hang", "exit"]

    async def test_close_is_idempotent(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(frame({"id": 1, "result": None})), writer)

        first = await client.close()
        second = await client.close()

        assert first is second

    async def test_requests_rejected_after_close(self, make_reader, make_writer) -> None:
        writer, _ = make_writer()
        client = LSPClient.from_streams(make_reader(frame({"id": 1, "result": None})), writer)
        await client.close()

        with pytest.raises(SessionStateError, match="closed"):
            await client.send_request("test/echo")
        with pytest.raises(SessionStateError, match="closed"):
            await client.send_notification("initialized")

    async def test_unstarted_session(self) -> None:
        client = LSPClient("does-not-matter")

        assert client.state is SessionState.UNSTARTED
        with pytest.raises(SessionStateError, match="unstarted"):
            await client.send_request("test/echo")

        result = await client.close()
        assert result.ok
        assert client.state is SessionState.CLOSED

    async def test_running_session_without_streams(self) -> None:
        client = LSPClient()
        client.state = SessionState.RUNNING

        with pytest.raises(SessionStateError, match="no transport streams"):
            await client.send_request("test/echo")
        with pytest.raises(SessionStateError, match="no transport streams"):
            await client.send_notification("initialized")
        assert client.next_id == 1
