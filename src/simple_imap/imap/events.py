# =============================================================================
# Event Listeners
# =============================================================================
# Minimal listener registry shared by the session, the connection and the
# client facade. Listeners are plain callables; coroutine functions are
# scheduled as tasks so emitting never blocks the protocol reader.
# =============================================================================

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventSource:
    """
    Mixin that lets callers observe named events.

    Usage:
        >>> source.on("error", lambda exc: print(exc))
        >>> source.off("error", callback)
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._listener_tasks: set[asyncio.Task] = set()

    def on(self, event: str, callback: Listener) -> None:
        """Register a listener for an event."""
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Listener) -> None:
        """Remove a previously registered listener (no-op if absent)."""
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def emit(self, event: str, *args: Any) -> None:
        """
        Call every listener registered for the event, in registration order.

        A failing listener is logged and does not stop the others.
        """
        for callback in list(self._listeners.get(event, [])):
            try:
                result = callback(*args)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._listener_tasks.discard)
            except Exception as e:
                logger.error(f"Error in {event!r} listener: {e}")
