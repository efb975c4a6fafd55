"""Debounced queue of changed source files."""

import asyncio
import logging
from typing import Callable, FrozenSet, List, Optional, Set

from .constants import DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

ChangeListener = Callable[[FrozenSet[str]], None]


class ChangeQueue:
    """Coalesces bursts of file-change notifications into single rebuild batches.

    Every ``push`` while unlocked restarts the quiet-period timer, so listeners
    are called once, after ``debounce`` seconds with no further pushes. While a
    rebuild holds the lock, pushes are only recorded and wait for ``unlock``.

    All methods must be called from the thread running the event loop.
    """

    def __init__(self, debounce: float = DEBOUNCE_SECONDS):
        self.debounce = debounce
        self.locked = False
        self._files: Set[str] = set()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._listeners: List[ChangeListener] = []

    def on_change(self, listener: ChangeListener) -> None:
        """Register a listener for emitted batches."""
        self._listeners.append(listener)

    @property
    def armed(self) -> bool:
        return self._timer is not None

    @property
    def pending(self) -> FrozenSet[str]:
        return frozenset(self._files)

    def push(self, path: str) -> None:
        """Record a changed file and, if unlocked, restart the quiet period."""
        self._files.add(path)
        if not self.locked:
            self._arm()

    def lock(self) -> None:
        """Mark a rebuild as in progress."""
        self.locked = True
        self._disarm()

    def unlock(self) -> None:
        """End the rebuild; changes that arrived meanwhile start a new cycle."""
        self.locked = False
        if self._files:
            self._arm()

    def is_empty(self) -> bool:
        return not self._files

    def cancel(self) -> None:
        """Disarm the timer and forget pending paths."""
        self._disarm()
        self._files.clear()

    def _arm(self) -> None:
        self._disarm()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce, self._trigger)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _trigger(self) -> None:
        self._timer = None
        if self.locked or not self._files:
            return

        batch = frozenset(self._files)
        # Cleared before listeners run so pushes during the rebuild form a new batch
        self._files.clear()
        logger.debug(f"Emitting change batch of {len(batch)} file(s)")
        for listener in list(self._listeners):
            try:
                listener(batch)
            except Exception as e:
                logger.error(f"Change listener failed: {e}", exc_info=True)
