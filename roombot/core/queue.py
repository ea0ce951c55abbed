"""Serialized action queue.

Side effects aimed at the remote room (chat messages, PMs, moderation
actions, bulk data requests) are pushed onto an ``ActionQueue`` instead of
being executed inline. Items run strictly in FIFO order with at least
``interval`` seconds between two executions, however many are submitted in a
burst.

Enqueuing onto an idle queue runs the new head immediately, then a timer on
the running event loop drains the rest one item per tick. Each item runs in
its own error boundary: a failing action is logged and the queue keeps
draining.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NamedTuple

LOGGER = logging.getLogger("ActionQueue")


class QueueItem(NamedTuple):
    """A queued unit of work, executed as ``fn(*args)``.

    ``context`` identifies who queued the work and is only used for logging.
    """

    context: Any
    fn: Callable[..., Any]
    args: tuple[Any, ...] = ()


@dataclass
class QueueStats:
    """Counters for one queue."""

    enqueued: int = 0
    executed: int = 0
    failed: int = 0


class ActionQueue:
    """FIFO executor that spaces items by a fixed minimum interval."""

    def __init__(self, interval: float, name: str = "actions") -> None:
        if isinstance(interval, bool) or not isinstance(interval, (int, float)):
            raise TypeError(
                f"ActionQueue interval must be a number, got {type(interval).__name__}"
            )
        if math.isnan(interval) or interval < 0:
            raise ValueError(f"ActionQueue interval must be non-negative, got {interval}")

        self.interval = float(interval)
        self.name = name
        self.stats = QueueStats()
        self._items: deque[QueueItem] = deque()
        self._flushing = False
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Future[Any]] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"<ActionQueue {self.name} size={len(self)} flushing={self._flushing}>"

    @property
    def flushing(self) -> bool:
        return self._flushing

    def enqueue(self, item: QueueItem) -> None:
        """Append an item and start flushing if the queue was idle."""
        self._items.append(item)
        self.stats.enqueued += 1
        self.flush()

    def submit(self, fn: Callable[..., Any], *args: Any, context: Any = None) -> None:
        """Shorthand for ``enqueue(QueueItem(context, fn, args))``."""
        self.enqueue(QueueItem(context, fn, args))

    def dequeue(self) -> QueueItem | None:
        """Remove and return the head item, or None if empty."""
        if self.is_empty():
            return None
        return self._items.popleft()

    def peek(self) -> QueueItem | None:
        """Return the head item without removing it."""
        return self._items[0] if self._items else None

    def is_empty(self) -> bool:
        return not self._items

    def flush(self) -> None:
        """Run the head now and arm the timer, unless already flushing or empty."""
        if self._flushing or self.is_empty():
            return
        loop = asyncio.get_running_loop()
        self._flushing = True
        item = self.dequeue()
        if item is not None:
            self._execute(item)
        # The item itself may have interrupted or cleared the queue
        if self._flushing:
            self._timer = loop.call_later(self.interval, self._tick)

    def interrupt(self) -> None:
        """Stop flushing; queued items stay for the next enqueue."""
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._flushing = False

    def clear(self) -> None:
        """Interrupt and discard every queued item."""
        self.interrupt()
        dropped = len(self._items)
        self._items.clear()
        if dropped:
            LOGGER.debug(f"[{self.name}] cleared {dropped} queued item(s)")

    def get_stats(self) -> dict[str, Any]:
        """Get queue statistics."""
        return {
            "name": self.name,
            "interval": self.interval,
            "size": len(self),
            "flushing": self._flushing,
            "enqueued": self.stats.enqueued,
            "executed": self.stats.executed,
            "failed": self.stats.failed,
        }

    # ------------------------------------------------------------------

    def _tick(self) -> None:
        self._timer = None
        item = self.dequeue()
        if item is None:
            self.interrupt()
            return
        self._execute(item)
        if self._flushing:
            self._timer = asyncio.get_running_loop().call_later(self.interval, self._tick)

    def _execute(self, item: QueueItem) -> None:
        try:
            result = item.fn(*item.args)
        except Exception:
            self.stats.failed += 1
            LOGGER.exception(f"[{self.name}] queued action failed (context={item.context!r})")
            return

        self.stats.executed += 1
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Future[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.stats.failed += 1
            LOGGER.error(f"[{self.name}] queued coroutine failed: {exc}", exc_info=exc)
