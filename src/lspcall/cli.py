"""Command-line interface for lspcall."""

from __future__ import annotations

import argparse
import asyncio
import shlex
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from lspcall import __version__
from lspcall.config import OUTPUT_FORMATS, load_config
from lspcall.errors import ConfigError, ParamsError
from lspcall.logging import setup_logging
from lspcall.methods import print_common_methods
from lspcall.params import load_params

console = Console(stderr=True)

EPILOG = """\
examples:
  # Hover information
  lspcall --server gopls --method textDocument/hover \\
      --params '{"textDocument":{"uri":"file:///path/to/file.go"},"position":{"line":10,"character":5}}'
  # Use params file
  lspcall --server gopls --method textDocument/completion --params-file hover.json
  # List workspace symbols
  lspcall --server gopls --method workspace/symbol --params '{"query":"main"}' --format json -q
"""


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lspcall",
        description="Send a single request to a language server over stdio",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--server",
        help="Language server command (e.g., gopls, clangd, 'pylsp -v')",
    )
    parser.add_argument(
        "--args",
        default="",
        help="Extra server arguments (comma-separated)",
    )
    parser.add_argument(
        "--method",
        help="LSP method to call",
    )
    parser.add_argument(
        "--params",
        help="JSON parameters for the method",
    )
    parser.add_argument(
        "--params-file",
        type=Path,
        help="Read parameters from JSON file",
    )
    parser.add_argument(
        "--root",
        help="Root URI for initialization (default: current directory)",
    )
    parser.add_argument(
        "--skip-init",
        action="store_true",
        help="Skip the initialize handshake (for raw requests)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        help="Session timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        help="Output format (default: pretty)",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only output result data, no headers or labels",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Config file path (default: ./lspcall.yaml)",
    )
    parser.add_argument(
        "--list-methods",
        action="store_true",
        help="List common LSP methods and exit",
    )
    return parser


def split_server_args(value: str) -> list[str]:
    """Split a comma-separated argument list, dropping empty entries."""
    return [arg.strip() for arg in value.split(",") if arg.strip()]


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.list_methods:
        print_common_methods()
        return 0

    if not parsed.server or not parsed.method:
        parser.print_help()
        return 1

    try:
        config = load_config(parsed.config)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    setup_logging(config.verbose + parsed.verbose, config.log_file)

    command = shlex.split(parsed.server)
    if not command:
        console.print("[red]Error: Empty server command[/red]")
        return 1

    try:
        params = load_params(parsed.params, parsed.params_file)
    except ParamsError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        return 1

    from lspcall.runner import CallOptions, run_call

    options = CallOptions(
        command=command[0],
        args=command[1:] + split_server_args(parsed.args),
        method=parsed.method,
        params=params,
        root_uri=parsed.root,
        skip_init=parsed.skip_init,
        timeout=parsed.timeout,
        format=parsed.format,
        quiet=parsed.quiet,
    )
    return asyncio.run(run_call(config, options))
