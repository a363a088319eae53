"""Rendering responses to stdout."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console

from lspcall.protocol.messages import Response


def _compact(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def _payload(response: Response) -> Any:
    """The result, or the error object when there is no result."""
    if response.has_result:
        return response.result
    if response.error is not None:
        return response.error.to_dict()
    return None


def render_response(
    method: str,
    response: Response,
    fmt: str = "pretty",
    *,
    quiet: bool = False,
    console: Console | None = None,
) -> None:
    """Write a response in one of the output formats.

    Formats:
        json: the whole response document, compact, on one line
        raw: the result (or error) only, compact, on one line
        pretty: indented JSON under a heading; only the result (or error) when quiet
    """
    console = console or Console()

    if fmt == "json":
        console.out(_compact(response.to_dict()), highlight=False)
    elif fmt == "raw":
        console.out(_compact(_payload(response)), highlight=False)
    elif fmt == "pretty":
        if quiet:
            console.print_json(data=_payload(response))
        else:
            console.print(f"Response for {method}:", markup=False, highlight=False)
            console.print_json(data=response.to_dict())
    else:
        raise ValueError(f"Unknown output format: {fmt!r}")
