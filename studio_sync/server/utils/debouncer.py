"""
Debouncing utilities for bursty filesystem events.

Editors and the OS often report a single save as several native events
(truncate, write, chmod, rename). This module collapses such bursts into
one trailing event per key.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Optional

from ..constants import WatcherConstants

logger = logging.getLogger(__name__)


@dataclass
class DebouncedEvent:
    """
    Container for a debounced event.

    Attributes:
        key: Coalescing key
        value: Most recent value seen for the key
        timestamp: Time when the first event of the burst was received
        last_update: Time of most recent update
        pending_task: Task that fires the handler after the quiet period
    """
    key: Hashable
    value: Any
    timestamp: float
    last_update: float
    pending_task: Optional[asyncio.Task] = None


class Debouncer:
    """
    Trailing-edge debouncer.

    Every call to debounce() restarts the quiet period for its key; the
    handler runs once with the last value after no new value arrived for
    `delay` seconds.

    Usage:
        debouncer = Debouncer(delay=0.05)

        debouncer.debounce("/tmp/spec.yaml", "changed", handler)
        debouncer.debounce("/tmp/spec.yaml", "removed", handler)

        # handler("/tmp/spec.yaml", "removed") runs once after 50ms
    """

    def __init__(self, delay: float = WatcherConstants.DEBOUNCE_DELAY_SECONDS):
        """
        Initialize debouncer.

        Args:
            delay: Quiet period in seconds
        """
        self.delay = delay
        self.pending_events: Dict[Hashable, DebouncedEvent] = {}
        self.logger = logging.getLogger(f"{__name__}.Debouncer")

    def debounce(
        self,
        key: Hashable,
        value: Any,
        handler: Callable[[Hashable, Any], Awaitable[None]],
    ) -> None:
        """
        Record a value for a key and (re)schedule the handler.

        Must be called from within the running event loop.

        Args:
            key: Coalescing key
            value: Value passed to the handler
            handler: Async function called with (key, value)
        """
        current_time = time.monotonic()
        first_seen = current_time

        existing = self.pending_events.get(key)
        if existing is not None:
            first_seen = existing.timestamp
            if existing.pending_task and not existing.pending_task.done():
                existing.pending_task.cancel()

        debounced = DebouncedEvent(
            key=key,
            value=value,
            timestamp=first_seen,
            last_update=current_time,
        )
        self.pending_events[key] = debounced

        debounced.pending_task = asyncio.get_running_loop().create_task(
            self._execute_after_delay(debounced, handler)
        )

    async def _execute_after_delay(self, debounced: DebouncedEvent, handler: Callable) -> None:
        """
        Execute handler after the quiet period.

        Args:
            debounced: The event this task was scheduled for
            handler: Handler to execute
        """
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.logger.debug(f"Debounced event {debounced.key} was superseded")
            raise

        # Only the latest event for a key may clear it
        if self.pending_events.get(debounced.key) is debounced:
            del self.pending_events[debounced.key]

        self.logger.debug(
            f"Executing debounced event {debounced.key} "
            f"(burst age: {time.monotonic() - debounced.timestamp:.3f}s)"
        )

        try:
            await handler(debounced.key, debounced.value)
        except Exception as e:
            self.logger.exception(f"Error executing debounced event {debounced.key}: {e}")

    def cancel(self, key: Hashable = None) -> None:
        """
        Drop pending events without running their handlers.

        Args:
            key: Optional specific key to cancel. If None, cancels all.
        """
        keys = [key] if key is not None else list(self.pending_events.keys())
        for k in keys:
            event = self.pending_events.pop(k, None)
            if event and event.pending_task and not event.pending_task.done():
                event.pending_task.cancel()
