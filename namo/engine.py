"""
Execution engine plugins.

The shell never parses or runs queries itself. An engine is any object with an
``execute(query, resume=None)`` method (coroutine or plain function) and,
optionally, a ``suggest(partial_line)`` method used for Tab completion.

Engines are published as factories in the ``namo.engines`` entry-point group,
or named directly with a ``module:attribute`` import path. A factory receives
the resolved :class:`~namo.connection.ConnectionConfig` and returns the engine.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import TYPE_CHECKING, Any, Mapping, Optional, Protocol, Sequence

import structlog

if TYPE_CHECKING:  # pragma: no cover
    from namo.connection import ConnectionConfig

logger = structlog.get_logger(__name__)

ENGINE_ENTRY_POINT_GROUP = "namo.engines"

# Page field carrying the continuation marker.
CONTINUATION_FIELD = "lastEvaluatedKey"
ITEMS_FIELD = "items"


class EngineLoadError(RuntimeError):
    """The configured engine could not be found or constructed."""


@dataclass(frozen=True)
class TokenSpan:
    """Character offsets of one token within the submitted query."""

    start_offset: Optional[int] = None
    end_offset: Optional[int] = None


class LocatedError(Exception):
    """A query failure that knows where in the input it happened.

    ``token`` is the offending token; ``previous_token`` is the last token
    that parsed cleanly. Either may be missing.
    """

    def __init__(
        self,
        message: str,
        *,
        token: Optional[TokenSpan] = None,
        previous_token: Optional[TokenSpan] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.token = token
        self.previous_token = previous_token


class ExecutionEngine(Protocol):
    def execute(self, query: str, resume: Any = None) -> Any: ...


# ---------------------------------------------------------------------------
# Page accessors
# ---------------------------------------------------------------------------

def _field(page: Any, name: str, attr: str) -> Any:
    if page is None:
        return None
    if isinstance(page, Mapping):
        return page.get(name)
    return getattr(page, attr, None)


def page_items(page: Any) -> Optional[Sequence[Any]]:
    """Return the page's item list, or None for a non-array payload."""
    items = _field(page, ITEMS_FIELD, "items")
    if isinstance(items, (list, tuple)):
        return items
    return None


def continuation_marker(page: Any) -> Any:
    """Return the page's resume token, or None when the result set is exhausted."""
    marker = _field(page, CONTINUATION_FIELD, "last_evaluated_key")
    return marker or None


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _import_path(path: str) -> Any:
    module_name, _, attr = path.partition(":")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as e:
        raise EngineLoadError(f"Cannot import engine module '{module_name}': {e}") from e
    for part in filter(None, attr.split(".")):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise EngineLoadError(f"Engine '{path}' has no attribute '{part}'") from e
    return target


def _resolve_factory(name: Optional[str]) -> Any:
    if name and ":" in name:
        return _import_path(name)

    available = {ep.name: ep for ep in entry_points(group=ENGINE_ENTRY_POINT_GROUP)}
    if name:
        if name not in available:
            known = ", ".join(sorted(available)) or "none installed"
            raise EngineLoadError(f"Unknown engine '{name}' (available: {known})")
        return available[name].load()
    if len(available) == 1:
        return next(iter(available.values())).load()
    if not available:
        raise EngineLoadError(
            "No query engine configured. Set NAMO_ENGINE to an installed engine "
            "name or a 'module:factory' path."
        )
    raise EngineLoadError(
        "Several engines are installed; choose one with NAMO_ENGINE "
        f"({', '.join(sorted(available))})."
    )


def load_engine(name: Optional[str], connection: "ConnectionConfig") -> ExecutionEngine:
    """Resolve the engine factory named by *name* and build it for *connection*."""
    factory = _resolve_factory(name)
    if not callable(factory):
        raise EngineLoadError(f"Engine factory {factory!r} is not callable")
    try:
        engine = factory(connection)
    except EngineLoadError:
        raise
    except Exception as e:
        raise EngineLoadError(f"Engine factory failed: {e}") from e
    if not callable(getattr(engine, "execute", None)):
        raise EngineLoadError(f"Engine {engine!r} has no execute() method")
    logger.info("engine.loaded", engine=type(engine).__name__)
    return engine
