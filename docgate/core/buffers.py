"""Scoped ownership of per-frame image buffers.

Every intermediate image produced while analysing a frame (normalized frame,
edge maps, rectified candidates, descriptor arrays) is registered with a
``FrameBuffers`` scope. Leaving the scope drops all references on every exit
path, so call sites never have to order their own cleanup.
"""
from __future__ import annotations

import threading
import logging
from typing import List, Optional, TypeVar

import numpy as np

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FrameBuffers:
    """Context manager that owns the buffers allocated for one frame."""

    _outstanding = 0
    _outstanding_lock = threading.Lock()

    def __init__(self, label: str = "frame"):
        self.label = label
        self._buffers: List[object] = []
        self._released = False

    def __enter__(self) -> "FrameBuffers":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    def track(self, buffer: T) -> T:
        """Register ``buffer`` with this scope and return it unchanged."""
        if self._released:
            raise RuntimeError(f"Buffer scope '{self.label}' already released")
        if buffer is None:
            return buffer
        self._buffers.append(buffer)
        with FrameBuffers._outstanding_lock:
            FrameBuffers._outstanding += 1
        return buffer

    def detach(self, buffer: np.ndarray) -> np.ndarray:
        """Hand out an independent copy of a tracked buffer.

        The copy is owned by the caller and survives the scope.
        """
        return np.array(buffer, copy=True)

    def release(self) -> None:
        if self._released:
            return
        count = len(self._buffers)
        self._buffers.clear()
        self._released = True
        with FrameBuffers._outstanding_lock:
            FrameBuffers._outstanding -= count
        if count:
            logger.debug("Released %d buffers for %s", count, self.label)

    @property
    def live_count(self) -> int:
        return len(self._buffers)

    @property
    def released(self) -> bool:
        return self._released

    @classmethod
    def outstanding(cls) -> int:
        """Buffers tracked by any scope that has not been released yet."""
        with cls._outstanding_lock:
            return cls._outstanding
