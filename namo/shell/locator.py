"""Error locator — points a caret at the offending token of a failed query."""

from __future__ import annotations

from typing import Any, Optional

from rich.console import Console
from rich.text import Text

ATTENTION_STYLE = "red"


def _offset(span: Any, name: str, attr: str) -> Optional[int]:
    if span is None:
        return None
    value = span.get(name) if isinstance(span, dict) else getattr(span, attr, None)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def locate(error: BaseException) -> Optional[int]:
    """Column of the problem within the query text, or None when unknown.

    Prefers the offending token's start; falls back to one past the end of
    the last token that parsed.
    """
    column = _offset(getattr(error, "token", None), "startOffset", "start_offset")
    if column is not None:
        return column
    previous_end = _offset(getattr(error, "previous_token", None), "endOffset", "end_offset")
    if previous_end is None:
        previous_end = _offset(getattr(error, "previousToken", None), "endOffset", "end_offset")
    if previous_end is not None:
        return previous_end + 1
    return None


def error_message(error: BaseException) -> str:
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(error) or type(error).__name__


class ErrorLocator:
    """Prints located errors under the echoed ``prompt + query`` line."""

    def __init__(self, console: Console, prompt: str) -> None:
        self._console = console
        self._prompt = prompt

    def caret_line(self, error: BaseException) -> Optional[str]:
        column = locate(error)
        if column is None:
            return None
        return " " * (column + len(self._prompt)) + "^"

    def report(self, error: BaseException) -> None:
        caret = self.caret_line(error)
        if caret is not None:
            self._console.print(Text(caret, style=ATTENTION_STYLE), soft_wrap=True)
        self._console.print(Text(error_message(error), style=ATTENTION_STYLE), soft_wrap=True)
