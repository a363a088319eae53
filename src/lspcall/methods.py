"""Reference list of common LSP methods for --list-methods."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

COMMON_METHODS: list[tuple[str, str, str]] = [
    ("Text Document", "textDocument/hover", "Get hover information"),
    ("Text Document", "textDocument/completion", "Get code completion"),
    ("Text Document", "textDocument/definition", "Go to definition"),
    ("Text Document", "textDocument/references", "Find references"),
    ("Text Document", "textDocument/documentSymbol", "Get document symbols"),
    ("Text Document", "textDocument/formatting", "Format document"),
    ("Text Document", "textDocument/codeAction", "Get code actions"),
    ("Text Document", "textDocument/rename", "Rename symbol"),
    ("Workspace", "workspace/symbol", "Find workspace symbols"),
    ("Workspace", "workspace/executeCommand", "Execute command"),
    ("Diagnostics", "textDocument/publishDiagnostics", "Diagnostics (notification)"),
]

EXAMPLE = (
    "echo '{\"textDocument\":{\"uri\":\"file:///path/to/file.go\"},"
    "\"position\":{\"line\":10,\"character\":5}}' > hover.json"
)


def print_common_methods(console: Console | None = None) -> None:
    console = console or Console()

    table = Table(title="Common LSP Methods")
    table.add_column("Category", style="dim")
    table.add_column("Method", style="cyan", no_wrap=True)
    table.add_column("Description")
    for category, method, description in COMMON_METHODS:
        table.add_row(category, method, description)

    console.print(table)
    console.print("\nExample parameter files can be created with:", highlight=False)
    console.print(f"  {EXAMPLE}", markup=False, highlight=False)
