"""Single-call mode: spawn a server, optionally initialize, send one request."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import JsonValue
from rich.console import Console
from rich.markup import escape

from lspcall.client import LSPClient
from lspcall.errors import LSPClientError, ProtocolError, SpawnError
from lspcall.logging import get_logger
from lspcall.output import render_response

if TYPE_CHECKING:
    from lspcall.config import Config

console = Console(stderr=True)

_log = get_logger("runner")


@dataclass
class CallOptions:
    """What to run and what to ask it."""

    command: str
    method: str
    args: list[str] = field(default_factory=list)
    params: JsonValue = None
    root_uri: str | None = None
    skip_init: bool = False
    timeout: float | None = None
    format: str | None = None
    quiet: bool = False


def default_root_uri() -> str:
    """file:// URI of the current working directory."""
    return Path.cwd().resolve().as_uri()


async def run_call(
    config: Config,
    options: CallOptions,
    *,
    out: Console | None = None,
) -> int:
    """Run one request against a freshly spawned server.

    Args:
        config: Configuration
        options: Server command, method and parameters
        out: Console for the rendered response (stdout by default)

    Returns:
        Exit code
    """
    timeout = options.timeout if options.timeout is not None else config.timeout
    fmt = options.format or config.format

    client = LSPClient(
        options.command,
        options.args,
        max_message_size=config.max_message_size,
        shutdown=config.shutdown,
    )
    client.set_deadline(timeout)

    try:
        await client.start()
    except SpawnError as e:
        console.print(f"[red]Error starting language server: {escape(str(e))}[/red]")
        return 1

    exit_code = 1
    try:
        if not options.skip_init:
            root_uri = options.root_uri or default_root_uri()
            try:
                result = await client.initialize(root_uri)
            except ProtocolError as e:
                console.print(f"[red]Failed to initialize language server: {escape(str(e))}[/red]")
                return 1
            _log.info("Initialized %s", (result.server_info or {}).get("name", options.command))

        response = await client.send_request(options.method, options.params)
        render_response(options.method, response, fmt, quiet=options.quiet, console=out)
        exit_code = 0
    except LSPClientError as e:
        console.print(f"[red]Request {escape(options.method)} failed: {escape(str(e))}[/red]")
    finally:
        close_result = await client.close()
        if not close_result.ok:
            _log.warning(
                "Language server did not close cleanly (returncode=%s, failures=%d)",
                close_result.returncode,
                len(close_result.failures),
            )

    return exit_code
