"""
Pagination controller — runs one query to completion, page by page.

The first page is fetched and rendered straight away. While the engine keeps
returning a continuation marker the user is asked whether to load the next
page; the marker is handed back to the engine exactly once and then dropped.
Engine failures are not handled here.
"""

from __future__ import annotations

import inspect
import re
from typing import Any, Awaitable, Callable, Optional

import structlog

from namo.engine import ExecutionEngine, continuation_marker
from namo.shell.blocking import run_blocking
from namo.shell.line_source import YELLOW
from namo.shell.renderer import PageRenderer

logger = structlog.get_logger(__name__)

NEXT_PAGE_QUESTION = "Load the next page? [Y/n] "

# Default-yes: an empty answer continues.
_CONTINUE_RE = re.compile(r"^y(es)?$|^\s*$", re.IGNORECASE)

Ask = Callable[[str], Awaitable[Optional[str]]]


def wants_next_page(answer: Optional[str]) -> bool:
    return answer is not None and _CONTINUE_RE.match(answer) is not None


async def execute(engine: ExecutionEngine, query: str, resume: Any = None) -> Any:
    """Call the engine, off the event loop when it is synchronous."""
    kwargs = {"resume": resume} if resume is not None else {}
    if inspect.iscoroutinefunction(engine.execute):
        return await engine.execute(query, **kwargs)
    result = await run_blocking(lambda: engine.execute(query, **kwargs), name="namo-execute")
    if inspect.isawaitable(result):
        result = await result
    return result


class PaginationController:
    """Drives one query through its pages.

    ``lines_finished`` reports how many terminal lines the line source has
    completed. The difference across a next-page question is how far the
    redraw climbs back to the previous page's closing line; an exit question
    answered in between adds to it. Without a counter one line is assumed.
    """

    def __init__(
        self,
        engine: ExecutionEngine,
        renderer: PageRenderer,
        ask: Ask,
        *,
        lines_finished: Optional[Callable[[], int]] = None,
    ) -> None:
        self._engine = engine
        self._renderer = renderer
        self._ask = ask
        self._lines_finished = lines_finished

    async def run(self, query: str) -> int:
        """Fetch and render pages until exhausted or declined. Returns pages rendered."""
        page = await execute(self._engine, query)
        closing = self._renderer.render(page)
        marker = continuation_marker(page)
        pages = 1

        while marker:
            before = self._lines_finished() if self._lines_finished else None
            answer = await self._ask(NEXT_PAGE_QUESTION)
            if not wants_next_page(answer):
                logger.debug("pagination.declined", pages=pages)
                break
            below = self._lines_finished() - before if before is not None else 1

            # Close the previous page with a comma and wipe everything the
            # questions left under it.
            if closing is not None:
                self._renderer.rewrite_tail(closing, lines_up=below + 1, clear=True)
            else:
                self._renderer.rewrite_tail(None, lines_up=below)

            resume, marker = marker, None
            page = await execute(self._engine, query, resume)
            pages += 1
            # An empty page leaves the earlier comma in place.
            closing = self._renderer.render(page)
            marker = continuation_marker(page)

        return pages


def question_asker(ask: Callable[..., Awaitable[Optional[str]]]) -> Ask:
    """Adapt ``LineSource.question`` to the yellow next-page question."""

    async def _ask(text: str) -> Optional[str]:
        return await ask(text, ansi_color=YELLOW)

    return _ask
