"""
Main — the namo session loop.

Reads one line at a time, decides what it is (blank, comment, exit keyword or
query), runs queries through the pagination controller and prints whatever
comes back. Ctrl-C asks before leaving. Query failures are reported under the
input line and the loop carries on; anything else ends the session.

Run it through the ``namo`` command (``namo.cli.app``) or ``python -m namo.main``.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Optional

import structlog
from rich.console import Console

from namo.config import NamoConfig
from namo.engine import ExecutionEngine
from namo.shell.line_source import LineSource
from namo.shell.locator import ErrorLocator
from namo.shell.pagination import PaginationController, question_asker
from namo.shell.renderer import PageRenderer
from namo.shell.state import SessionState

EXIT_QUESTION = "Are you sure you want to exit? "


def _truncate_query_fields(logger, method_name, event_dict):
    """Structlog processor that keeps query text in log lines short."""
    max_display_len = 80
    value = event_dict.get("query")
    if isinstance(value, str) and len(value) > max_display_len:
        event_dict["query"] = value[:max_display_len] + "... [truncated]"
    return event_dict


_logging_configured = False


def configure_logging(level: str = "WARNING") -> None:
    """Configure structlog and standard-library logging.

    Safe to call more than once; only the first call takes effect.
    """
    global _logging_configured  # noqa: PLW0603
    if _logging_configured:
        return
    _logging_configured = True

    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            _truncate_query_fields,
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger(__name__)


class LineKind(str, Enum):
    EMPTY = "empty"
    COMMENT = "comment"
    EXIT = "exit"
    QUERY = "query"


class NamoSession:
    """
    One interactive session against one execution engine.

    Owns the session state machine and wires the line source, pagination
    controller, page renderer and error locator together.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        *,
        config: Optional[NamoConfig] = None,
        console: Optional[Console] = None,
        line_source: Optional[LineSource] = None,
    ):
        self._config = config or NamoConfig()
        self._console = console or Console()
        self._engine = engine
        self.state = SessionState(prompt=self._config.prompt)
        self._lines = line_source or LineSource(
            self.state.prompt, suggest=getattr(engine, "suggest", None)
        )
        self._renderer = PageRenderer(self._console)
        self._locator = ErrorLocator(self._console, self.state.prompt)
        self._pagination = PaginationController(
            engine,
            self._renderer,
            question_asker(self._lines.question),
            lines_finished=lambda: self._lines.lines_finished,
        )
        self._shutdown_event = asyncio.Event()
        self._confirm_task: Optional[asyncio.Future] = None
        self._lines.on_interrupt(self._handle_sigint)

    def classify(self, line: str) -> LineKind:
        query = line.strip()
        if not query:
            return LineKind.EMPTY
        if query.startswith(self._config.comment_marker):
            return LineKind.COMMENT
        if query in self._config.exit_keywords:
            return LineKind.EXIT
        return LineKind.QUERY

    async def run(self) -> int:
        """Run until an exit keyword, EOF or a confirmed Ctrl-C. Returns the exit status.

        Failures outside the per-query boundary end the session with status 1
        and are re-raised for the caller to report.
        """
        self._lines.open()
        loop_task = asyncio.create_task(self._interaction_loop(), name="namo-session-loop")
        shutdown_wait = asyncio.create_task(
            self._shutdown_event.wait(), name="namo-session-shutdown"
        )
        try:
            done, _ = await asyncio.wait(
                {loop_task, shutdown_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
            if loop_task in done:
                loop_task.result()
        except Exception as e:
            self.state.terminate(1)
            logger.error("session.fatal", error=str(e))
            raise
        finally:
            # In-flight engine calls are abandoned, not awaited.
            pending = [t for t in (loop_task, shutdown_wait, self._confirm_task) if t is not None]
            for task in pending:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self._lines.close()

        self.state.terminate(0)
        return self.state.exit_status or 0

    async def _interaction_loop(self) -> None:
        while not self.state.terminated:
            line = await self._lines.read_line()
            if line is None:
                logger.debug("session.eof")
                self._request_shutdown(0)
                return

            if self.state.confirmation_pending and self._confirm_task is not None:
                # Ctrl-C landed as this line arrived; it waits for the answer.
                await self._confirm_task
                if self.state.terminated:
                    return

            kind = self.classify(line)
            if kind in (LineKind.EMPTY, LineKind.COMMENT):
                continue
            if kind is LineKind.EXIT:
                self._request_shutdown(0)
                return

            await self._dispatch(line)

    async def _dispatch(self, query: str) -> None:
        self.state.begin_dispatch()
        try:
            await self._pagination.run(query)
        except Exception as e:
            logger.debug("session.query_failed", query=query, error=str(e))
            self._locator.report(e)
        finally:
            self.state.finish_dispatch()

    # ------------------------------------------------------------------
    # Signal handling
    # ------------------------------------------------------------------

    def _request_shutdown(self, status: int = 0) -> None:
        self.state.terminate(status)
        self._shutdown_event.set()

    def _handle_sigint(self) -> None:
        """Ask before leaving. A Ctrl-C while the question is open is ignored."""
        if not self.state.interrupt():
            return
        answer = self._lines.request(EXIT_QUESTION, urgent=True)
        self._confirm_task = asyncio.ensure_future(self._confirm_exit(answer))

    async def _confirm_exit(self, answer: Any) -> None:
        if self.state.resolve_interrupt(await answer):
            self._request_shutdown(0)


def main() -> None:
    """Entry point for ``python -m namo.main``."""
    from namo.cli.app import cli

    cli()


if __name__ == "__main__":
    main()
