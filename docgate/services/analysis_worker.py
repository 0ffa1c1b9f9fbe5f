"""Background frame analysis with a keep-only-latest mailbox."""

import logging
import threading
import time
from typing import Callable, List, Optional

from ..core.entities import Frame
from .frame_analyzer import AnalysisOutcome, FrameAnalyzer

logger = logging.getLogger(__name__)


class AnalysisWorker:
    """Analyses frames on one worker thread, always the most recent one.

    ``submit`` never blocks: a frame still waiting in the mailbox is replaced
    and counted as dropped. A frame already being analysed completes.
    """

    def __init__(self, analyzer: FrameAnalyzer,
                 is_enabled: Callable[[], bool] = lambda: True,
                 analysis_interval_ms: int = 0,
                 clock: Callable[[], float] = time.monotonic):
        self.analyzer = analyzer
        self._is_enabled = is_enabled
        self.analysis_interval_ms = analysis_interval_ms
        self._clock = clock

        self._pending: Optional[Frame] = None
        self._cond = threading.Condition()
        self._listeners: List[Callable[[AnalysisOutcome], None]] = []
        self._thread: Optional[threading.Thread] = None
        self._running = False
        self._last_analysis: Optional[float] = None

        self.dropped_frames = 0
        self.skipped_frames = 0
        self.analyzed_frames = 0
        self.failed_frames = 0

    def add_listener(self, cb: Callable[[AnalysisOutcome], None]) -> None:
        self._listeners.append(cb)

    def submit(self, frame: Frame) -> None:
        with self._cond:
            if self._pending is not None:
                self.dropped_frames += 1
            self._pending = frame
            self._cond.notify()

    def _take(self, timeout: Optional[float]) -> Optional[Frame]:
        with self._cond:
            if self._pending is None:
                self._cond.wait(timeout)
            frame, self._pending = self._pending, None
            return frame

    def run_once(self, timeout: Optional[float] = 0.0) -> Optional[AnalysisOutcome]:
        """Analyse the pending frame, if any and if analysis is wanted."""
        frame = self._take(timeout)
        if frame is None:
            return None

        if not self._is_enabled():
            self.skipped_frames += 1
            return None

        now = self._clock()
        if (self.analysis_interval_ms > 0 and self._last_analysis is not None
                and (now - self._last_analysis) * 1000.0 < self.analysis_interval_ms):
            self.skipped_frames += 1
            return None
        self._last_analysis = now

        try:
            outcome = self.analyzer.analyze(frame)
        except Exception as e:
            self.failed_frames += 1
            logger.error(f"Frame analysis failed: {e}", exc_info=True)
            return None

        self.analyzed_frames += 1
        for cb in self._listeners:
            try:
                cb(outcome)
            except Exception as e:
                logger.error(f"Error in result listener: {e}")
        return outcome

    def start(self) -> None:
        if self._running:
            logger.warning("Analysis worker already running")
            return
        self._running = True
        self._thread = threading.Thread(target=self._loop, name="docgate-analysis", daemon=True)
        self._thread.start()
        logger.info("Analysis worker started")

    def _loop(self) -> None:
        while self._running:
            self.run_once(timeout=0.1)

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        with self._cond:
            self._cond.notify_all()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        logger.info(
            f"Analysis worker stopped: {self.analyzed_frames} analysed, "
            f"{self.dropped_frames} dropped, {self.skipped_frames} skipped"
        )

    def is_running(self) -> bool:
        return self._running
