"""
Lifecycle events of the analysis engine.

The engine publishes these through an EventDispatcher so a dashboard (or a
log sink) can follow computations without polling the cache.
"""
import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Type, Union

from ..shared.types import WaveAnalysisResult


logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


@dataclass(frozen=True)
class EngineEvent:
    """Base class; ``timestamp`` is epoch seconds."""
    timestamp: int = field(default_factory=_now, kw_only=True)


@dataclass(frozen=True)
class AnalysisStarted(EngineEvent):
    symbol: str
    timeframe: str
    force_refresh: bool = False


@dataclass(frozen=True)
class AnalysisCompleted(EngineEvent):
    symbol: str
    timeframe: str
    result: WaveAnalysisResult
    from_cache: bool = False


@dataclass(frozen=True)
class AnalysisFailed(EngineEvent):
    symbol: str
    timeframe: str
    reason: str


@dataclass(frozen=True)
class RefreshProgress(EngineEvent):
    """Emitted after each symbol of a batch refresh."""
    symbol: str
    completed: int
    total: int
    success: bool


@dataclass(frozen=True)
class RefreshFinished(EngineEvent):
    timeframe: str
    succeeded: Tuple[str, ...]
    failed: Tuple[str, ...]


Handler = Callable[[EngineEvent], Union[None, Awaitable[None]]]


class EventDispatcher:
    """Async event dispatcher.

    Handlers can be sync or async functions. Exceptions in handlers are logged
    but don't stop dispatch to other handlers.
    """

    def __init__(self):
        self._handlers: Dict[Type[EngineEvent], List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: Type[EngineEvent], handler: Handler) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: Type[EngineEvent], handler: Handler) -> None:
        """Unregister a handler from an event type."""
        if handler in self._handlers[event_type]:
            self._handlers[event_type].remove(handler)

    async def publish(self, event: EngineEvent) -> None:
        """Dispatch event to all handlers registered for its exact type, in order."""
        for handler in list(self._handlers[type(event)]):
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                name = getattr(handler, "__name__", repr(handler))
                logger.error(
                    f"Event handler {name} failed for {event.__class__.__name__}: {e}",
                    exc_info=True,
                )


async def publish_optional(dispatcher: Optional[EventDispatcher], event: EngineEvent) -> None:
    """Publish when a dispatcher is configured."""
    if dispatcher is not None:
        await dispatcher.publish(event)
