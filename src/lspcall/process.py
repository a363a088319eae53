"""Spawning and stopping the language server process."""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import signal
from collections.abc import Mapping, Sequence

from lspcall.errors import SpawnError
from lspcall.logging import get_logger

_log = get_logger("process")

# Windows-specific subprocess creation flags
_WINDOWS = platform.system() == "Windows"
_CREATE_NEW_PROCESS_GROUP = 0x00000200 if _WINDOWS else 0


async def spawn_server(
    command: str,
    args: Sequence[str] = (),
    *,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
) -> asyncio.subprocess.Process:
    """Start the server with all three standard streams piped.

    Raises:
        SpawnError: If the process cannot be started or a pipe is missing.
            No process is left running in that case.
    """
    try:
        # On Windows, create in new process group to enable Ctrl+Break signaling
        process = await asyncio.create_subprocess_exec(
            command,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            creationflags=_CREATE_NEW_PROCESS_GROUP,  # type: ignore[arg-type]
        )
    except (OSError, ValueError) as e:
        raise SpawnError(f"Failed to start {command!r}: {e}") from e

    if process.stdin is None or process.stdout is None or process.stderr is None:
        process.kill()
        await process.wait()
        raise SpawnError(f"Failed to open stdio pipes for {command!r}")

    return process


async def drain_stderr(stream: asyncio.StreamReader, log: logging.Logger) -> None:
    """Log the server's stderr line by line until EOF."""
    while True:
        try:
            line = await stream.readline()
        except ValueError:
            # Over-long line; readline already discarded it
            log.debug("server: <stderr line too long, skipped>")
            continue
        if not line:
            return
        log.debug("server: %s", line.decode("utf-8", errors="replace").rstrip())


# Ctrl-Break reaches a child in its own process group; SIGINT elsewhere
_INTERRUPT = signal.CTRL_BREAK_EVENT if _WINDOWS else signal.SIGINT  # type: ignore[attr-defined]


def _deliver(process: asyncio.subprocess.Process, sig: int) -> None:
    """Send sig to the server, falling back to process.terminate()."""
    try:
        process.send_signal(sig)
    except ProcessLookupError:
        pass
    except (OSError, ValueError):
        process.terminate()


async def graceful_shutdown(
    process: asyncio.subprocess.Process,
    interrupt_timeout: float = 2.0,
    terminate_timeout: float = 3.0,
) -> None:
    """Stop a server that ignored the exit notification.

    Escalates interrupt → SIGTERM → kill, waiting the given number of seconds
    after each of the first two signals. Returns once the process is reaped.
    """
    for sig, timeout in ((_INTERRUPT, interrupt_timeout), (signal.SIGTERM, terminate_timeout)):
        if process.returncode is not None:
            return
        _log.debug("Sending signal %s to pid %d", sig, process.pid)
        _deliver(process, sig)
        try:
            await asyncio.wait_for(process.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            _log.warning("Language server ignored signal %s for %.3gs", sig, timeout)

    if process.returncode is None:
        _log.warning("Killing language server (pid %d)", process.pid)
        process.kill()
        await process.wait()
