"""Geometric search for card-shaped quadrilaterals."""

import logging
from typing import List, Optional

import cv2
import numpy as np

from ..core.buffers import FrameBuffers
from ..core.constants import CARD_ASPECT_RATIO
from ..core.entities import Bounds, Candidate
from ..utils.geometry import aspect_ratio, clip_roi, offset_corners, order_corners, within_aspect_band

logger = logging.getLogger(__name__)


class CandidateDetector:
    """Finds up to ``max_candidates`` convex quads with an ID-1 aspect ratio.

    Edge map (blur, Canny, closing) -> external contours -> the largest few
    are approximated to polygons and kept when they are convex 4-gons whose
    minimum-area rectangle has the expected aspect ratio.
    """

    def __init__(self, blur_kernel_size: int = 5, canny_low: int = 50, canny_high: int = 150,
                 close_kernel_size: int = 7, max_candidates: int = 5,
                 epsilon_ratio: float = 0.02, target_aspect: float = CARD_ASPECT_RATIO,
                 aspect_tolerance: float = 0.4):
        self.blur_kernel_size = blur_kernel_size
        self.canny_low = canny_low
        self.canny_high = canny_high
        self.max_candidates = max_candidates
        self.epsilon_ratio = epsilon_ratio
        self.target_aspect = target_aspect
        self.aspect_tolerance = aspect_tolerance
        self._kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (close_kernel_size, close_kernel_size))

    @classmethod
    def from_config(cls, config) -> "CandidateDetector":
        return cls(
            blur_kernel_size=config.blur_kernel_size,
            canny_low=config.canny_low_threshold,
            canny_high=config.canny_high_threshold,
            close_kernel_size=config.close_kernel_size,
            max_candidates=config.max_candidates,
            epsilon_ratio=config.approx_epsilon_ratio,
            target_aspect=config.target_aspect_ratio,
            aspect_tolerance=config.aspect_tolerance,
        )

    def detect(self, image: np.ndarray, roi: Optional[Bounds] = None,
               buffers: Optional[FrameBuffers] = None) -> List[Candidate]:
        """Return 0..max_candidates candidates in full-image coordinates.

        Args:
            image: Normalized gray image
            roi: Optional (x, y, w, h) window to search in
            buffers: Scope that owns the intermediate edge maps
        """
        if buffers is None:
            with FrameBuffers("detect") as scope:
                return self.detect(image, roi, scope)

        height, width = image.shape[:2]
        dx = dy = 0
        window = image
        if roi is not None:
            clipped = clip_roi(roi, width, height)
            if clipped is None:
                logger.debug(f"Region of interest {roi} lies outside the {width}x{height} frame")
                return []
            dx, dy, w, h = clipped
            window = image[dy:dy + h, dx:dx + w]

        k = self.blur_kernel_size
        blurred = buffers.track(cv2.GaussianBlur(window, (k, k), 0))
        edges = buffers.track(cv2.Canny(blurred, self.canny_low, self.canny_high))
        closed = buffers.track(cv2.morphologyEx(edges, cv2.MORPH_CLOSE, self._kernel))

        contours, _ = cv2.findContours(closed, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        contours = sorted(contours, key=cv2.contourArea, reverse=True)[:self.max_candidates]

        candidates: List[Candidate] = []
        for contour in contours:
            candidate = self._evaluate(contour)
            if candidate is None:
                continue
            if dx or dy:
                candidate = Candidate(offset_corners(candidate.corners, dx, dy), candidate.aspect_ratio)
            candidates.append(candidate)

        logger.debug(f"{len(contours)} contours examined, {len(candidates)} candidates")
        return candidates

    def _evaluate(self, contour: np.ndarray) -> Optional[Candidate]:
        perimeter = cv2.arcLength(contour, True)
        approx = cv2.approxPolyDP(contour, self.epsilon_ratio * perimeter, True)
        if len(approx) != 4 or not cv2.isContourConvex(approx):
            return None

        (_, _), (rect_w, rect_h), _ = cv2.minAreaRect(approx)
        ratio = aspect_ratio(rect_w, rect_h)
        if not within_aspect_band(ratio, self.target_aspect, self.aspect_tolerance):
            return None

        return Candidate(order_corners(approx.reshape(4, 2)), ratio)
