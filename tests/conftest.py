"""
Shared fixtures for the namo test suite.

Provides a capturing console, a scripted terminal reader, fake engines and a
tiny screen emulator so individual test modules can check what the user would
actually see after cursor-up / clear-down redraws.
"""

from __future__ import annotations

import asyncio
import io
import queue
import re
from typing import Any, Callable, Optional

import pytest
from rich.console import Console


# ---------------------------------------------------------------------------
# Console capture
# ---------------------------------------------------------------------------

@pytest.fixture()
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture()
def console(output: io.StringIO) -> Console:
    return Console(file=output, color_system=None, width=120)


# ---------------------------------------------------------------------------
# Screen emulator
# ---------------------------------------------------------------------------

_CONTROL_RE = re.compile(r"\x1b\[(\d*)A|\x1b\[J|\n")
_STYLE_RE = re.compile(r"\x1b\[[0-9;]*m|[\001\002]")


def render_screen(transcript: str) -> list[str]:
    """Apply cursor-up and clear-to-end-of-screen to *transcript*; return the lines."""
    rows = [""]
    row = col = 0
    pos = 0
    text = _STYLE_RE.sub("", transcript)

    def _write(chunk: str) -> None:
        nonlocal col
        line = rows[row].ljust(col)
        rows[row] = line[:col] + chunk + line[col + len(chunk):]
        col += len(chunk)

    for match in _CONTROL_RE.finditer(text):
        if match.start() > pos:
            _write(text[pos:match.start()])
        token = match.group(0)
        if token == "\n":
            row += 1
            col = 0
            if row == len(rows):
                rows.append("")
        elif token == "\x1b[J":
            rows[row] = rows[row][:col]
            del rows[row + 1:]
        else:
            row = max(0, row - int(match.group(1) or 1))
        pos = match.end()
    if pos < len(text):
        _write(text[pos:])
    while rows and rows[-1] == "":
        rows.pop()
    return rows


@pytest.fixture()
def screen() -> Callable[[str], list[str]]:
    return render_screen


# ---------------------------------------------------------------------------
# Terminal input
# ---------------------------------------------------------------------------

class ScriptedReader:
    """Stands in for ``input()``: records prompts and returns queued lines.

    Lines can be fed while a read is blocked; ``None`` means EOF. An empty
    queue times out into EOF so a forgotten line never hangs the suite.
    """

    def __init__(self, lines: tuple[Optional[str], ...] = ()) -> None:
        self.prompts: list[str] = []
        self._lines: queue.Queue = queue.Queue()
        for line in lines:
            self._lines.put(line)

    def feed(self, line: Optional[str]) -> None:
        self._lines.put(line)

    def __call__(self, prompt: str, keep_history: bool = True) -> Optional[str]:
        self.prompts.append(prompt)
        try:
            item = self._lines.get(timeout=5)
        except queue.Empty:
            return None
        if isinstance(item, BaseException):
            raise item
        return item


class EchoingReader(ScriptedReader):
    """A ScriptedReader that also draws the prompt and typed line, like a terminal."""

    def __init__(self, output: io.StringIO) -> None:
        super().__init__()
        self._output = output

    def __call__(self, prompt: str, keep_history: bool = True) -> Optional[str]:
        self._output.write(prompt)
        line = super().__call__(prompt, keep_history)
        if line is not None:
            self._output.write(line + "\n")
        return line


@pytest.fixture()
def reader() -> ScriptedReader:
    return ScriptedReader()


@pytest.fixture()
def echoing_reader(output: io.StringIO) -> EchoingReader:
    return EchoingReader(output)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* on the event loop until it holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture()
def until():
    return wait_for


# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------

class PagedEngine:
    """Async engine serving a fixed list of pages, recording every call."""

    def __init__(self, pages: list[Any], suggestion: str = "") -> None:
        self.pages = list(pages)
        self.calls: list[tuple[str, Any]] = []
        self.suggestion = suggestion

    async def execute(self, query: str, resume: Any = None) -> Any:
        self.calls.append((query, resume))
        if isinstance(self.pages[0], BaseException):
            raise self.pages.pop(0)
        return self.pages.pop(0)

    def suggest(self, partial_line: str) -> str:
        return partial_line + self.suggestion


class SyncEngine:
    """Blocking engine, like a boto3-backed client."""

    def __init__(self, pages: list[Any]) -> None:
        self.pages = list(pages)
        self.calls: list[tuple[str, Any]] = []

    def execute(self, query: str, resume: Any = None) -> Any:
        self.calls.append((query, resume))
        return self.pages.pop(0)


class StalledEngine:
    """Async engine that never answers until released."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: list[str] = []

    async def execute(self, query: str, resume: Any = None) -> Any:
        self.calls.append(query)
        self.started.set()
        await self.release.wait()
        return {"items": []}


@pytest.fixture()
def paged_engine_factory():
    return PagedEngine


@pytest.fixture()
def sync_engine_factory():
    return SyncEngine


@pytest.fixture()
def stalled_engine_factory():
    return StalledEngine
