"""Per-frame validation: normalize, detect, rectify and verify."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import numpy as np

from ..core.buffers import FrameBuffers
from ..core.entities import Bounds, Frame, ValidationResult
from ..core.exceptions import RectificationError
from ..core.performance import PerformanceTimer
from .candidate_detector import CandidateDetector
from .content_verifier import ContentVerifier
from .frame_normalizer import FrameNormalizer
from .perspective_rectifier import PerspectiveRectifier
from .reference_template import ReferenceTemplate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of one frame plus, when valid, the caller-owned card image."""
    result: ValidationResult
    region: Optional[np.ndarray] = None


class FrameAnalyzer:
    """Runs the geometric and content checks on one frame at a time.

    The first candidate that verifies ends the search. All intermediate
    images live in a ``FrameBuffers`` scope that is released before
    ``analyze`` returns; only the accepted card image is copied out.
    """

    def __init__(self, normalizer: FrameNormalizer, detector: CandidateDetector,
                 rectifier: PerspectiveRectifier, verifier: ContentVerifier,
                 clock: Callable[[], float] = time.monotonic):
        if (rectifier.width, rectifier.height) != verifier.template.size:
            raise ValueError("Rectifier output size must match the reference template")
        self.normalizer = normalizer
        self.detector = detector
        self.rectifier = rectifier
        self.verifier = verifier
        self._clock = clock
        self._last_time: Optional[float] = None
        self._roi: Optional[Bounds] = None
        self._roi_lock = threading.Lock()

        self._total_analyses = 0
        self._successful_analyses = 0
        self._consecutive_failures = 0
        self._average_processing_time_ms = 0.0
        self._last_success_time: Optional[float] = None

    @classmethod
    def from_config(cls, template: ReferenceTemplate, config, **kwargs) -> "FrameAnalyzer":
        return cls(
            FrameNormalizer.from_config(config),
            CandidateDetector.from_config(config),
            PerspectiveRectifier(template.width, template.height),
            ContentVerifier.from_config(template, config),
            **kwargs,
        )

    def set_region_of_interest(self, bounds: Optional[Bounds]) -> None:
        """Restrict detection to ``bounds`` (upright frame coordinates), or clear it."""
        if bounds is not None:
            x, y, w, h = bounds
            if w <= 0 or h <= 0:
                raise ValueError(f"Region of interest must have a positive size: {bounds}")
            bounds = (int(x), int(y), int(w), int(h))
        with self._roi_lock:
            self._roi = bounds
        logger.debug(f"Region of interest set to {bounds}")

    @property
    def region_of_interest(self) -> Optional[Bounds]:
        with self._roi_lock:
            return self._roi

    def analyze(self, frame: Frame) -> AnalysisOutcome:
        started = time.perf_counter()
        roi = self.region_of_interest

        with FrameBuffers(f"frame@{frame.timestamp:.3f}") as buffers:
            with PerformanceTimer("analyzer.normalize"):
                normalized = self.normalizer.normalize(frame)
            image = buffers.track(normalized.image)

            with PerformanceTimer("analyzer.detect"):
                candidates = self.detector.detect(image, roi=roi, buffers=buffers)

            corners = None
            good_matches = 0
            region = None
            with PerformanceTimer("analyzer.verify"):
                for candidate in candidates:
                    try:
                        rectified = buffers.track(self.rectifier.rectify(image, candidate))
                    except RectificationError as e:
                        logger.debug(f"Candidate rejected: {e}")
                        continue
                    match = self.verifier.verify(rectified, buffers)
                    good_matches = max(good_matches, match.good_matches)
                    if match.verified:
                        corners = candidate.corners
                        good_matches = match.good_matches
                        region = buffers.detach(rectified)
                        break

        now = self._clock()
        fps = 0.0
        if self._last_time is not None and now > self._last_time:
            delta_ms = (now - self._last_time) * 1000.0
            fps = 1000.0 / delta_ms
        self._last_time = now

        elapsed_ms = (time.perf_counter() - started) * 1000.0
        result = ValidationResult(
            is_valid=corners is not None,
            corners=corners,
            src_width=normalized.width,
            src_height=normalized.height,
            rotation_degrees=frame.rotation_degrees,
            fps=fps,
            good_matches=good_matches,
            processing_time_ms=elapsed_ms,
        )
        self._update_performance_stats(result.is_valid, elapsed_ms)
        return AnalysisOutcome(result=result, region=region)

    def _update_performance_stats(self, success: bool, elapsed_ms: float) -> None:
        self._total_analyses += 1
        if success:
            self._successful_analyses += 1
            self._consecutive_failures = 0
            self._last_success_time = self._clock()
        else:
            self._consecutive_failures += 1

        n = self._total_analyses
        self._average_processing_time_ms += (elapsed_ms - self._average_processing_time_ms) / n

        if n % 10 == 0:
            logger.info(
                f"Performance Stats: Success Rate: {self._success_rate():.0f}%, "
                f"Avg Processing Time: {self._average_processing_time_ms:.1f}ms, "
                f"Consecutive Failures: {self._consecutive_failures}"
            )

    def _success_rate(self) -> float:
        if self._total_analyses == 0:
            return 0.0
        return self._successful_analyses / self._total_analyses * 100.0

    def get_performance_stats(self) -> Dict[str, Any]:
        return {
            "total_analyses": self._total_analyses,
            "successful_analyses": self._successful_analyses,
            "success_rate_percent": self._success_rate(),
            "consecutive_failures": self._consecutive_failures,
            "average_processing_time_ms": self._average_processing_time_ms,
            "last_success_time": self._last_success_time,
        }

    def reset_performance_stats(self) -> None:
        self._total_analyses = 0
        self._successful_analyses = 0
        self._consecutive_failures = 0
        self._average_processing_time_ms = 0.0
        self._last_success_time = None
        logger.info("Performance stats reset")
