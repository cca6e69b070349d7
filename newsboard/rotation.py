"""
Carousel rotation timing.

`RotationTimer` owns the selected index of the active item list and keeps
at most one pending delayed callback: either the advance to the next item
(after the current item's duration) or the short settle delay after a
pointer release. Every reschedule cancels the previous callback first,
and callbacks that fire after being superseded are ignored.

Two schedulers are provided:
- ThreadScheduler: real wall-clock timers (threading.Timer) for kiosks
- ManualScheduler: an explicit clock advanced by the caller, used by the
  Streamlit display page (ticked once per rerun) and by tests
"""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence

from newsboard.config import settings
from newsboard.domain import ContentItem, effective_duration

logger = logging.getLogger(__name__)


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...


# =============================================================================
# Schedulers
# =============================================================================


class _TimerHandle:
    def __init__(self, timer: threading.Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadScheduler:
    """Schedules callbacks on daemon `threading.Timer` threads."""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return _TimerHandle(timer)


@dataclass(order=True)
class _ManualEntry:
    due: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by `advance()`.

    Callbacks run synchronously inside `advance()` in due-time order; a
    callback scheduled while advancing runs in the same call if it falls
    due before the new clock time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[_ManualEntry] = []
        self._counter = itertools.count()
        self._lock = threading.RLock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle:
        with self._lock:
            entry = _ManualEntry(self._now + max(0.0, delay), next(self._counter), callback)
            heapq.heappush(self._queue, entry)
            return entry

    def pending(self) -> int:
        with self._lock:
            return sum(1 for entry in self._queue if not entry.cancelled)

    def next_due(self) -> Optional[float]:
        with self._lock:
            live = [entry.due for entry in self._queue if not entry.cancelled]
            return min(live) if live else None

    def advance(self, seconds: float) -> int:
        """Move the clock forward, running due callbacks. Returns how many ran."""
        with self._lock:
            target = self._now + max(0.0, seconds)
        ran = 0
        while True:
            with self._lock:
                while self._queue and self._queue[0].cancelled:
                    heapq.heappop(self._queue)
                if not self._queue or self._queue[0].due > target:
                    self._now = target
                    return ran
                entry = heapq.heappop(self._queue)
                self._now = entry.due
            entry.callback()
            ran += 1

    def advance_to(self, timestamp: float) -> int:
        return self.advance(timestamp - self.now())


# =============================================================================
# Rotation
# =============================================================================


def _fingerprint(items: Sequence[ContentItem]) -> list[tuple]:
    return [(item.id, item.duration, item.url, item.type) for item in items]


class RotationTimer:
    """
    Selected-index state machine for the display carousel.

    The carousel loops: next() from the last item selects the first.
    While the pointer is held, selection changes but nothing is scheduled.
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        *,
        default_duration: float | None = None,
        settle_delay: float | None = None,
        on_change: Callable[[int], None] | None = None,
    ) -> None:
        self.scheduler = scheduler or ThreadScheduler()
        self.default_duration = default_duration or settings.default_duration_seconds
        self.settle_delay = settings.pointer_settle_seconds if settle_delay is None else settle_delay
        self.on_change = on_change

        self._items: list[ContentItem] = []
        self._index = 0
        self._handle: Optional[Handle] = None
        self._generation = 0
        self._due_at: Optional[float] = None
        self._pointer_down = False
        self._stopped = False
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def items(self) -> list[ContentItem]:
        with self._lock:
            return list(self._items)

    @property
    def index(self) -> int:
        with self._lock:
            return self._index

    @property
    def current(self) -> Optional[ContentItem]:
        with self._lock:
            return self._items[self._index] if self._items else None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._handle is not None

    @property
    def pointer_is_down(self) -> bool:
        with self._lock:
            return self._pointer_down

    def remaining(self) -> Optional[float]:
        """Seconds until the pending advance fires (None when nothing is pending)."""
        with self._lock:
            if self._due_at is None:
                return None
            return max(0.0, self._due_at - self.scheduler.now())

    def duration_of(self, item: Optional[ContentItem]) -> float:
        if item is None:
            return float(self.default_duration)
        return effective_duration(item.duration, self.default_duration)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def set_items(self, items: Sequence[ContentItem]) -> None:
        """
        Replace the item list from a new snapshot.

        Keeps the selected index if it is still in range, otherwise
        returns to the first item. Reissues the pending advance when the
        item set changed; an empty list cancels everything.
        """
        with self._lock:
            changed = _fingerprint(items) != _fingerprint(self._items)
            previous_index = self._index
            self._items = list(items)
            if not self._items:
                self._index = 0
                self._cancel()
            else:
                if self._index >= len(self._items):
                    self._index = 0
                if changed or self._handle is None:
                    self.start_timer()
            index = self._index
        if changed and index != previous_index:
            self._notify(index)

    def select(self, index: int) -> None:
        """Select an item (wrapping) and restart its countdown."""
        with self._lock:
            if not self._items:
                return
            self._index = index % len(self._items)
            self.start_timer()
            index = self._index
        self._notify(index)

    def next(self) -> None:
        with self._lock:
            target = self._index + 1
        self.select(target)

    def previous(self) -> None:
        with self._lock:
            target = self._index - 1
        self.select(target)

    def pointer_down(self) -> None:
        """User grabbed the carousel: cancel the pending advance or settle."""
        with self._lock:
            self._pointer_down = True
            self._cancel()

    def pointer_up(self) -> None:
        """User released: restart the countdown after the settle delay."""
        with self._lock:
            self._pointer_down = False
            if self._stopped or not self._items:
                return
            self._replace_handle(self.settle_delay, self._on_settled, due_at=None)

    def start_timer(self) -> None:
        """(Re)schedule the advance from the selected item's duration."""
        with self._lock:
            if self._stopped or self._pointer_down or not self._items:
                self._cancel()
                return
            delay = self.duration_of(self._items[self._index])
            self._replace_handle(delay, self._on_advance, due_at=self.scheduler.now() + delay)

    def stop(self) -> None:
        with self._lock:
            self._stopped = True
            self._cancel()

    def resume(self) -> None:
        with self._lock:
            self._stopped = False
            self.start_timer()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._due_at = None

    def _replace_handle(self, delay: float, fire: Callable[[int], None], *, due_at: Optional[float]) -> None:
        self._cancel()
        generation = self._generation
        self._handle = self.scheduler.call_later(delay, lambda: fire(generation))
        self._due_at = due_at

    def _on_settled(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._handle = None
            self.start_timer()

    def _on_advance(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                logger.debug("Ignoring superseded rotation callback")
                return
            self._handle = None
            self._due_at = None
            if not self._items:
                return
            self._index = (self._index + 1) % len(self._items)
            self.start_timer()
            index = self._index
        self._notify(index)

    def _notify(self, index: int) -> None:
        if self.on_change is not None:
            self.on_change(index)
