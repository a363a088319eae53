"""Language server client session.

One LSPClient owns one server process and the framed transport bound to its
stdin/stdout. Requests are issued one at a time: each call writes a request
and then reads messages until the reply with the same id arrives, skipping
notifications and stale replies on the way.

Session lifecycle:
    UNSTARTED --start()--> RUNNING --close()--> SHUTTING_DOWN --> CLOSED

Example:
    >>> async with LSPClient("pylsp") as client:
    ...     await client.initialize("file:///tmp/proj")
    ...     response = await client.send_request("workspace/symbol", {"query": "main"})
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import JsonValue, ValidationError

from lspcall import __version__
from lspcall.config import ShutdownConfig
from lspcall.errors import (
    DeadlineExceeded,
    LSPClientError,
    ProtocolError,
    SessionStateError,
    SpawnError,
)
from lspcall.logging import get_logger
from lspcall.process import drain_stderr, graceful_shutdown, spawn_server
from lspcall.protocol.messages import (
    ClientInfo,
    InitializeParams,
    InitializeResult,
    Notification,
    Request,
    Response,
    default_client_capabilities,
    is_incoming_call,
)
from lspcall.transport.framing import DEFAULT_MAX_MESSAGE_SIZE, read_message, write_message

_log = get_logger("client")
_server_log = get_logger("server")

STDERR_DRAIN_TIMEOUT = 1.0


class SessionState(Enum):
    """Lifecycle state of a client session."""

    UNSTARTED = "unstarted"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    CLOSED = "closed"


@dataclass
class CloseResult:
    """Outcome of closing a session.

    Failures of individual shutdown steps are collected here instead of being
    raised, so the caller decides how strict to be.
    """

    returncode: int | None = None
    failures: list[tuple[str, BaseException]] = field(default_factory=list)
    signalled: bool = False
    """True if the server had to be interrupted, terminated or killed."""

    @property
    def ok(self) -> bool:
        return not self.failures and not self.returncode

    def record(self, step: str, error: BaseException) -> None:
        _log.warning("Close step %r failed: %s", step, error)
        self.failures.append((step, error))


class LSPClient:
    """Client side of one language server session."""

    def __init__(
        self,
        command: str | None = None,
        args: Sequence[str] = (),
        *,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
        max_message_size: int = DEFAULT_MAX_MESSAGE_SIZE,
        shutdown: ShutdownConfig | None = None,
    ) -> None:
        self.command = command
        self.args = list(args)
        self.cwd = cwd
        self.env = env
        self.max_message_size = max_message_size
        self.shutdown_config = shutdown or ShutdownConfig()

        self.state = SessionState.UNSTARTED
        self.process: asyncio.subprocess.Process | None = None
        self.server_capabilities: dict[str, JsonValue] | None = None
        self.server_info: dict[str, JsonValue] | None = None

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._stderr_task: asyncio.Task[None] | None = None
        self._next_id = 1
        self._deadline: float | None = None
        self._desynchronized = False
        self._close_result: CloseResult | None = None

    @classmethod
    def from_streams(
        cls,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        **kwargs: Any,
    ) -> LSPClient:
        """Create a running session over already-connected streams.

        No process is owned; close() only performs the protocol handshake and
        closes the writer.
        """
        client = cls(**kwargs)
        client._reader = reader
        client._writer = writer
        client.state = SessionState.RUNNING
        return client

    # -- lifecycle ---------------------------------------------------------

    async def start(self) -> None:
        """Spawn the server process and bind the transport to its pipes.

        Raises:
            SpawnError: If the process or its pipes could not be created.
        """
        if self.state is not SessionState.UNSTARTED:
            raise SessionStateError(f"Cannot start a session that is {self.state.value}")
        if not self.command:
            raise SessionStateError("No server command to start")

        _log.info("Spawning language server: %s", " ".join([self.command, *self.args]))
        process = await spawn_server(self.command, self.args, cwd=self.cwd, env=self.env)
        if process.stdin is None or process.stdout is None or process.stderr is None:
            raise SpawnError(f"Language server {self.command!r} started without stdio pipes")

        self.process = process
        self._reader = process.stdout
        self._writer = process.stdin
        self._stderr_task = asyncio.create_task(drain_stderr(process.stderr, _server_log))
        self.state = SessionState.RUNNING
        _log.debug("Language server started (pid=%d)", process.pid)

    async def __aenter__(self) -> LSPClient:
        if self.state is SessionState.UNSTARTED:
            await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def set_deadline(self, seconds: float | None) -> None:
        """Bound every following request by a session-wide deadline.

        Args:
            seconds: Time from now, or None to remove the deadline.
        """
        if seconds is None:
            self._deadline = None
        else:
            self._deadline = asyncio.get_running_loop().time() + seconds

    @property
    def desynchronized(self) -> bool:
        """True once a deadline expired with a reply possibly still in flight."""
        return self._desynchronized

    @property
    def next_id(self) -> int:
        return self._next_id

    # -- messaging ---------------------------------------------------------

    async def send_request(
        self,
        method: str,
        params: JsonValue = None,
        *,
        timeout: float | None = None,
    ) -> Response:
        """Send a request and wait for the response with the same id.

        Args:
            method: LSP method name.
            params: JSON parameters, or None to omit them.
            timeout: Seconds to wait for the reply. The session deadline, if
                set, applies as well; the earlier of the two wins.

        Raises:
            TransportError: If writing or reading fails.
            FramingError: If a malformed message arrives.
            ProtocolError: If the matching reply is malformed.
            DeadlineExceeded: If no reply arrives in time. The session is
                desynchronized afterwards and refuses further requests.
        """
        self._require_running(method)
        if self._desynchronized:
            raise SessionStateError(
                "Session stream is desynchronized after a missed deadline; start a new session"
            )
        return await self._call(method, params, self._effective_timeout(timeout))

    async def send_notification(self, method: str, params: JsonValue = None) -> None:
        """Send a notification. No id is consumed and no reply is awaited."""
        self._require_running(method)
        await self._notify(method, params)

    async def initialize(
        self,
        root_uri: str | None,
        *,
        capabilities: dict[str, JsonValue] | None = None,
        timeout: float | None = None,
    ) -> InitializeResult:
        """Perform the initialize → initialized handshake.

        Raises:
            ProtocolError: If the server answers initialize with an error.
        """
        params = InitializeParams(
            process_id=os.getpid(),
            root_uri=root_uri,
            capabilities=capabilities if capabilities is not None else default_client_capabilities(),
            client_info=ClientInfo(name="lspcall", version=__version__),
        )

        response = await self.send_request("initialize", params.to_dict(), timeout=timeout)
        if response.error is not None:
            raise ProtocolError(
                f"LSP initialize error [{response.error.code}]: {response.error.message}",
                code=response.error.code,
                data=response.error.data,
            )

        try:
            result = InitializeResult.model_validate(response.result or {})
        except ValidationError:
            _log.warning("Unrecognized initialize result: %r", response.result)
            result = InitializeResult()
        self.server_capabilities = result.capabilities
        self.server_info = result.server_info

        await self.send_notification("initialized", {})
        return result

    async def close(self) -> CloseResult:
        """Shut the session down: shutdown → exit → close pipes → wait.

        Never raises for a failing step; see CloseResult. Calling close() again
        returns the first result.
        """
        if self._close_result is not None:
            return self._close_result
        result = CloseResult()
        if self.state is SessionState.UNSTARTED:
            self.state = SessionState.CLOSED
            self._close_result = result
            return result

        self.state = SessionState.SHUTTING_DOWN
        cfg = self.shutdown_config

        if self._desynchronized:
            _log.info("Skipping shutdown request: stream is desynchronized")
        else:
            try:
                response = await self._call("shutdown", None, cfg.request_timeout)
                response.raise_for_error()
            except LSPClientError as e:
                result.record("shutdown", e)

        try:
            await self._notify("exit", None)
        except LSPClientError as e:
            result.record("exit", e)

        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError as e:
                result.record("close stdin", e)

        if self.process is not None:
            await self._wait_for_exit(self.process, result)

        if self._stderr_task is not None:
            # The pipe reaches EOF once the server is gone; wait_for cancels on timeout
            try:
                await asyncio.wait_for(self._stderr_task, timeout=STDERR_DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                pass
            except (OSError, ValueError) as e:
                result.record("close stderr", e)

        self.state = SessionState.CLOSED
        self._close_result = result
        _log.debug("Session closed (returncode=%s)", result.returncode)
        return result

    # -- internals ---------------------------------------------------------

    def _require_running(self, method: str) -> None:
        if self.state is not SessionState.RUNNING:
            raise SessionStateError(f"Cannot send {method!r}: session is {self.state.value}")

    def _streams(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        if self._reader is None or self._writer is None:
            raise SessionStateError("Session has no transport streams")
        return self._reader, self._writer

    def _effective_timeout(self, timeout: float | None) -> float | None:
        remaining = None
        if self._deadline is not None:
            remaining = self._deadline - asyncio.get_running_loop().time()
        candidates = [t for t in (timeout, remaining) if t is not None]
        return min(candidates) if candidates else None

    async def _call(self, method: str, params: JsonValue, timeout: float | None) -> Response:
        if timeout is not None and timeout <= 0:
            raise DeadlineExceeded(method, 0.0)

        self._streams()
        request = Request(id=self._next_id, method=method, params=params)
        self._next_id += 1

        _log.debug("Sending request %s (id=%d)", method, request.id)
        try:
            return await asyncio.wait_for(self._exchange(request), timeout=timeout)
        except asyncio.TimeoutError:
            self._desynchronized = True
            raise DeadlineExceeded(method, timeout or 0.0) from None

    async def _exchange(self, request: Request) -> Response:
        reader, writer = self._streams()
        await write_message(writer, request.to_dict())

        while True:
            message = await read_message(reader, max_message_size=self.max_message_size)

            if is_incoming_call(message):
                _log.debug(
                    "Ignoring server message %s while waiting for id=%d",
                    message["method"],
                    request.id,
                )
                continue

            msg_id = message.get("id")
            if isinstance(msg_id, bool) or msg_id != request.id:
                _log.debug(
                    "Discarding unexpected response id=%r (expected %d)", msg_id, request.id
                )
                continue

            response = Response.from_dict(message)
            if not response.is_well_formed:
                raise ProtocolError(
                    f"Response to {request.method!r} (id={request.id}) "
                    "must carry exactly one of result and error"
                )
            _log.debug(
                "Received response to %s (id=%d, error=%s)",
                request.method,
                request.id,
                response.has_error,
            )
            return response

    async def _notify(self, method: str, params: JsonValue) -> None:
        _, writer = self._streams()
        notification = Notification(method=method, params=params)
        _log.debug("Sending notification %s", method)
        await write_message(writer, notification.to_dict())

    async def _wait_for_exit(
        self, process: asyncio.subprocess.Process, result: CloseResult
    ) -> None:
        cfg = self.shutdown_config
        try:
            await asyncio.wait_for(process.wait(), timeout=cfg.exit_timeout)
        except asyncio.TimeoutError:
            _log.warning(
                "Language server did not exit within %.3gs, stopping it", cfg.exit_timeout
            )
            result.signalled = True
            await graceful_shutdown(
                process,
                interrupt_timeout=cfg.interrupt_timeout,
                terminate_timeout=cfg.terminate_timeout,
            )
        result.returncode = process.returncode
