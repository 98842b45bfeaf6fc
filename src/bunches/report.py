from __future__ import annotations

import json
from typing import IO, Any

import click

UNNAMED = "UNNAMED"


class Reporter:
    """Progress sink for commands.

    Text mode prints plain lines; JSON mode emits one object per line. The
    reporter only observes; failing commands raise from the action itself.
    """

    def __init__(self, *, json_output: bool = False, file: IO[str] | None = None):
        self.json_output = json_output
        self.file = file

    def _emit(self, payload: dict[str, Any], text: str | None, *, err: bool = False) -> None:
        if self.json_output:
            click.echo(json.dumps(payload, ensure_ascii=False), file=self.file)
        elif text is not None:
            click.echo(text, file=self.file, err=err and self.file is None)

    def info(self, message: str) -> None:
        self._emit({"type": "info", "name": UNNAMED, "data": message}, message)

    def error(self, code: str, message: str) -> None:
        self._emit(
            {"type": "error", "name": code, "data": message},
            f"error: {message}",
            err=True,
        )

    def record(self, data: dict[str, Any]) -> None:
        # structured records only surface in JSON mode
        self._emit(data, None)
