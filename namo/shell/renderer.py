"""
Page renderer — prints result pages as colored JSON.

Each array element is printed as its own top-level JSON value. Between two
elements the cursor moves back up over the element's closing line and the
line is printed again with a trailing comma, so the scrollback reads as one
comma-separated sequence that can be pasted between brackets. The pages
themselves stay independent values; the joining is purely on screen.
"""

from __future__ import annotations

import base64
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from rich.console import Console
from rich.highlighter import JSONHighlighter
from rich.json import JSON

from namo.engine import page_items

# Raw cursor control, emitted even when stdout is not a terminal so a
# captured transcript carries the same redraw sequence.
CLEAR_SCREEN_DOWN = "\x1b[J"


def cursor_up(lines: int) -> str:
    return f"\x1b[{lines}A" if lines > 0 else ""


_INDENT = 2


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(bytes(value)).decode("ascii")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _non_finite(_constant: str) -> None:
    # NaN and Infinity have no JSON form; they become null.
    return None


def normalize(value: Any) -> Any:
    """Deep-copy *value* through JSON so only JSON-representable data survives."""
    text = json.dumps(value, default=_json_default, ensure_ascii=False)
    return json.loads(text, parse_constant=_non_finite)


def to_json_text(value: Any) -> str:
    return json.dumps(normalize(value), indent=_INDENT, ensure_ascii=False)


class PageRenderer:
    """Prints pages to a rich console and performs the on-screen comma joins."""

    def __init__(self, console: Console) -> None:
        self._console = console
        self._highlighter = JSONHighlighter()

    def render(self, page: Any) -> Optional[str]:
        """Print *page*; return the closing line of the last value printed.

        Array pages print their items; any other page prints as one value.
        Returns None when nothing was printed.
        """
        if page is None:
            return None
        items = page_items(page)
        if items is None:
            return self.print_value(page)

        closing: Optional[str] = None
        for index, item in enumerate(items):
            closing = self.print_value(item)
            if index < len(items) - 1:
                self.rewrite_tail(closing, lines_up=1)
        return closing

    def print_value(self, value: Any) -> str:
        text = to_json_text(value)
        self._console.print(JSON(text, indent=_INDENT, ensure_ascii=False), soft_wrap=True)
        return text.rsplit("\n", 1)[-1]

    def rewrite_tail(self, closing: Optional[str], *, lines_up: int, clear: bool = False) -> None:
        """Move up *lines_up* lines and reprint *closing* with a trailing comma.

        With ``closing=None`` the lines are only cleared. ``clear`` erases
        everything below the rewritten line.
        """
        self._emit(cursor_up(lines_up))
        if closing is not None:
            self._console.print(self._highlighter(closing + ","), soft_wrap=True)
        if clear or closing is None:
            self._emit(CLEAR_SCREEN_DOWN)

    def _emit(self, sequence: str) -> None:
        self._console.file.write(sequence)
        self._console.file.flush()
