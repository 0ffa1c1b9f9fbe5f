"""Cooperative, cancellable deadline timers.

Timers never run on their own thread. The owner polls ``expired()`` from the
thread that owns the guarded state, so a timer can only fire in between two
state transitions. Each timer carries the ``token`` of the transition that
armed it; the owner compares it against the current one and ignores stale
expiries.
"""
from __future__ import annotations

import time
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimerHandle:
    name: str
    deadline: float
    token: int
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class DeadlineTimers:
    """Named one-shot deadlines checked by the owning thread."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._timers: Dict[str, TimerHandle] = {}

    def start(self, name: str, delay_ms: float, token: int) -> TimerHandle:
        """Arm ``name``; an existing timer of the same name is replaced."""
        previous = self._timers.get(name)
        if previous is not None:
            previous.cancel()
        handle = TimerHandle(name=name, deadline=self._clock() + delay_ms / 1000.0, token=token)
        self._timers[name] = handle
        logger.debug("Timer '%s' armed for %.0f ms (token=%d)", name, delay_ms, token)
        return handle

    def cancel(self, name: str) -> bool:
        handle = self._timers.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        count = len(self._timers)
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        return count

    def expired(self, now: Optional[float] = None) -> List[TimerHandle]:
        """Pop and return every timer whose deadline has passed, earliest first."""
        now = self._clock() if now is None else now
        due = [h for h in self._timers.values() if not h.cancelled and h.deadline <= now]
        due.sort(key=lambda h: h.deadline)
        for handle in due:
            del self._timers[handle.name]
        return due

    def next_deadline(self) -> Optional[float]:
        live = [h.deadline for h in self._timers.values() if not h.cancelled]
        return min(live) if live else None

    def is_active(self, name: str) -> bool:
        handle = self._timers.get(name)
        return handle is not None and not handle.cancelled

    def __len__(self) -> int:
        return len(self._timers)
