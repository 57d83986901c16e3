"""
Line source — terminal input for the session.

Every read is a *claim* on the next line the user types. The session loop
claims lines with the main prompt; the pagination controller and the exit
confirmation claim answers to questions. Only one blocking ``input()`` call
is ever in flight, and each line it returns goes to the claim at the front of
the queue. The exit confirmation jumps the queue, so an answer typed after
Ctrl-C always reaches it even if a prompt was already on screen.

Ctrl-C is delivered through the event loop's SIGINT handler and fanned out to
the registered interrupt handlers; it never stops the process by itself.
"""

from __future__ import annotations

import asyncio
import re
import signal
import sys
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional, TextIO

import structlog

from namo.shell.blocking import run_blocking

# Ensure input() uses readline-backed line editing/history when available.
try:  # pragma: no cover - platform-dependent optional module
    import readline
except ImportError:  # pragma: no cover
    readline = None

try:  # pragma: no cover - platform-dependent optional module
    import termios as _termios
except ImportError:  # pragma: no cover
    _termios = None

logger = structlog.get_logger(__name__)

# ANSI control-sequence matcher used to sanitize any raw escape text that
# still slips through on terminals without full line-edit support.
_ANSI_ESCAPE_RE = re.compile(r"\x1b(?:\[[0-?]*[ -/]*[@-~]|[@-_])")

BOLD = "1"
YELLOW = "33"

Reader = Callable[[str, bool], Optional[str]]


def make_input_prompt(text: str, *, ansi_color: str = "", for_readline: bool = True) -> str:
    """Build a terminal prompt string safe for ``input()``.

    With readline, ANSI escape sequences are wrapped in ``\\001``/``\\002``
    markers so readline doesn't count them toward the visible prompt width.
    """
    if not ansi_color:
        return text
    start = f"\033[{ansi_color}m"
    reset = "\033[0m"
    if readline is not None and for_readline:
        start = f"\001{start}\002"
        reset = f"\001{reset}\002"
    return f"{start}{text}{reset}"


def sanitize_terminal_input(line: str) -> str:
    """Strip terminal control escape sequences from interactive input."""
    if not line:
        return line
    cleaned = _ANSI_ESCAPE_RE.sub("", line)
    return cleaned.replace("\r", "")


def _dedupe_history(line: str, keep: bool) -> None:
    """Drop older copies of *line* from the in-memory history (or *line* itself)."""
    if readline is None or not line:
        return
    try:
        length = readline.get_current_history_length()
        if length < 1 or readline.get_history_item(length) != line:
            return
        if not keep:
            readline.remove_history_item(length - 1)
            return
        for pos in range(length - 1, 0, -1):
            if readline.get_history_item(pos) == line:
                readline.remove_history_item(pos - 1)
    except (AttributeError, ValueError) as e:
        logger.debug("line_source.history_dedupe_failed", error=str(e))


def read_line_blocking(prompt: str = "", keep_history: bool = True) -> Optional[str]:
    """Read one terminal line, passing *prompt* to ``input()`` directly.

    Passing the prompt to ``input()`` lets readline know the actual cursor
    column. Returns None on EOF.
    """
    try:
        line = input(prompt)
    except EOFError:
        return None
    _dedupe_history(line, keep_history)
    return line


@dataclass
class _Claim:
    prompt: str
    future: asyncio.Future
    keep_history: bool = True


class LineSource:
    """Trimmed input lines, questions, Tab completion and the interrupt signal."""

    def __init__(
        self,
        prompt: str,
        *,
        suggest: Optional[Callable[[str], Any]] = None,
        reader: Optional[Reader] = None,
        output: Optional[TextIO] = None,
    ) -> None:
        self.prompt = prompt
        self.prompt_text = make_input_prompt(prompt, ansi_color=BOLD)
        self._suggest = suggest
        self._reader: Reader = reader or read_line_blocking
        self._output = output
        self._claims: deque[_Claim] = deque()
        self._read_task: Optional[asyncio.Future] = None
        self._interrupt_handlers: list[Callable[[], None]] = []
        self._completion_matches: list[str] = []
        self._signal_loop: Optional[asyncio.AbstractEventLoop] = None
        self._term_attrs: Any = None
        self._closed = False
        self._lines_finished = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Capture terminal mode, install completion and hook SIGINT."""
        self._capture_terminal_state()
        self._configure_readline_completion()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, self.interrupt)
            self._signal_loop = loop
        except (NotImplementedError, RuntimeError):
            # No loop signal support (Windows, or not the main thread).
            logger.debug("line_source.sigint_unsupported")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._signal_loop is not None:
            try:
                self._signal_loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass
            self._signal_loop = None
        while self._claims:
            claim = self._claims.popleft()
            if not claim.future.done():
                claim.future.cancel()
        self._restore_terminal_state()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def lines_finished(self) -> int:
        """Number of terminal lines this source has finished.

        Each answered prompt ends one line, and so does the break written
        ahead of an urgent question.
        """
        return self._lines_finished

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    async def read_line(self) -> Optional[str]:
        """Show the main prompt and wait for the next trimmed line (None on EOF)."""
        return await self._enqueue(self.prompt_text, urgent=False, keep_history=True)

    async def question(self, text: str, *, ansi_color: str = "", urgent: bool = False) -> Optional[str]:
        """Ask *text* and wait for the answer, holding back line delivery until then."""
        return await self.request(text, ansi_color=ansi_color, urgent=urgent)

    def request(self, text: str, *, ansi_color: str = "", urgent: bool = False) -> asyncio.Future:
        """Queue a question now and return the future its answer lands in.

        An urgent question is answered by the very next line, ahead of any
        claim already waiting. Cancelling the future withdraws the question.
        """
        if urgent and self._read_task is not None:
            # Another prompt is already on screen; put the question below it.
            self._write("\n" + make_input_prompt(text, ansi_color=ansi_color, for_readline=False))
            self._lines_finished += 1
        prompt = make_input_prompt(text, ansi_color=ansi_color)
        return self._enqueue(prompt, urgent=urgent, keep_history=False)

    def _enqueue(self, prompt: str, *, urgent: bool, keep_history: bool) -> asyncio.Future:
        if self._closed:
            raise RuntimeError("line source is closed")
        claim = _Claim(prompt, asyncio.get_running_loop().create_future(), keep_history)
        if urgent:
            self._claims.appendleft(claim)
        else:
            self._claims.append(claim)
        claim.future.add_done_callback(lambda _f: self._drop(claim))
        if self._read_task is None:
            self._start_read(claim)
        return claim.future

    def _drop(self, claim: _Claim) -> None:
        if claim in self._claims:
            self._claims.remove(claim)

    def _start_read(self, claim: _Claim) -> None:
        reader = self._reader
        prompt, keep = claim.prompt, claim.keep_history
        self._read_task = asyncio.ensure_future(
            run_blocking(lambda: reader(prompt, keep), name="namo-read-line")
        )
        self._read_task.add_done_callback(self._on_line)

    def _on_line(self, task: asyncio.Future) -> None:
        self._read_task = None
        if task.cancelled():
            return
        error = task.exception()
        line = None if error is not None else task.result()
        if line is not None:
            # Enter ends the line on screen.
            self._lines_finished += 1
            line = sanitize_terminal_input(line).strip()

        while self._claims:
            claim = self._claims.popleft()
            if claim.future.done():
                continue
            if error is not None:
                claim.future.set_exception(error)
            else:
                claim.future.set_result(line)
            break
        else:
            logger.debug("line_source.unclaimed_line")

        if self._claims and not self._closed:
            self._start_read(self._claims[0])

    def _write(self, text: str) -> None:
        out = self._output or sys.stdout
        out.write(text)
        out.flush()

    # ------------------------------------------------------------------
    # Interrupt
    # ------------------------------------------------------------------

    def on_interrupt(self, handler: Callable[[], None]) -> None:
        self._interrupt_handlers.append(handler)

    def interrupt(self) -> None:
        """Deliver a Ctrl-C to every registered handler."""
        for handler in list(self._interrupt_handlers):
            handler()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete(self, partial_line: str) -> tuple[list[str], str]:
        """Return ``([suggestion], partial_line)`` for the current input.

        The partial line comes back unmodified so the terminal can fall back
        to the literal text when there is no semantic suggestion.
        """
        if self._suggest is None:
            return [], partial_line
        try:
            suggestion = self._suggest(partial_line)
        except Exception as e:
            logger.debug("line_source.suggest_failed", error=str(e))
            return [], partial_line
        return [suggestion], partial_line

    def _readline_completer(self, text: str, state: int) -> Optional[str]:
        """Readline completer callback; *text* is the whole line up to the cursor."""
        if state == 0:
            candidates, partial = self.complete(text)
            self._completion_matches = [c for c in candidates if isinstance(c, str) and c]
            if not self._completion_matches:
                self._completion_matches = [partial]
        if state < len(self._completion_matches):
            return self._completion_matches[state]
        return None

    def _configure_readline_completion(self) -> None:
        """Install whole-line Tab completion when readline is available."""
        if readline is None:
            return
        try:
            readline.parse_and_bind("tab: complete")
            readline.set_completer_delims("")
            readline.set_completer(self._readline_completer)
        except Exception as e:
            logger.debug("line_source.readline_setup_failed", error=str(e))

    # ------------------------------------------------------------------
    # Terminal mode
    # ------------------------------------------------------------------

    def _capture_terminal_state(self) -> None:
        """Capture the current terminal mode so it can be restored on close."""
        if _termios is None or not sys.stdin.isatty():
            return
        try:
            self._term_attrs = _termios.tcgetattr(sys.stdin.fileno())
        except _termios.error:
            self._term_attrs = None

    def _restore_terminal_state(self) -> None:
        """Best-effort terminal mode restoration to avoid post-exit no-echo shells."""
        if _termios is None or self._term_attrs is None:
            return
        try:
            _termios.tcsetattr(sys.stdin.fileno(), _termios.TCSADRAIN, self._term_attrs)
        except _termios.error as e:
            logger.debug("line_source.tty_restore_failed", error=str(e))
