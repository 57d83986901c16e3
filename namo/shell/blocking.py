"""Run blocking callables off the event loop.

Two things block in namo: ``input()`` waiting for the next terminal line, and
synchronous engines (boto3 clients and the like) executing a query. Both run
here so the loop stays free to answer Ctrl-C.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Any, Callable


async def run_blocking(fn: Callable[[], Any], *, name: str = "namo-blocking") -> Any:
    """Call *fn* in its own daemon thread and await the outcome.

    When the session ends, a read still parked in ``input()`` or an abandoned
    engine call is left behind; daemon threads let the process exit anyway,
    which the default executor's workers would not. Cancelling the await
    stops waiting but cannot stop *fn*.
    """
    loop = asyncio.get_running_loop()
    outcome: asyncio.Future = loop.create_future()

    def _settle(result: Any, error: BaseException | None) -> None:
        if outcome.done():
            return
        if error is not None:
            outcome.set_exception(error)
        else:
            outcome.set_result(result)

    def _worker() -> None:
        result, error = None, None
        try:
            result = fn()
        except BaseException as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(_settle, result, error)
        except RuntimeError:
            # The session loop has shut down.
            pass

    threading.Thread(target=_worker, name=name, daemon=True).start()
    return await outcome
