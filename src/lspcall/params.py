"""Loading request parameters from the command line or a file."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import JsonValue

from lspcall.errors import ParamsError


def load_params(params: str | None = None, params_file: Path | None = None) -> JsonValue:
    """Decode request parameters.

    A params file takes precedence over a literal string. An empty literal or
    ``{}`` means no parameters at all.

    Raises:
        ParamsError: If the file cannot be read or the text is not valid JSON.
    """
    if params_file is not None:
        try:
            text = params_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ParamsError(f"Failed to read params file {params_file}: {e}") from e
        source = str(params_file)
    elif params is not None and params.strip() not in ("", "{}"):
        text = params
        source = "--params"
    else:
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParamsError(f"Invalid JSON in {source}: {e}") from e
