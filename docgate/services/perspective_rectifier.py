"""Maps a candidate quadrilateral onto the canonical template rectangle."""

import logging

import cv2
import numpy as np

from ..core.constants import TEMPLATE_WIDTH, TEMPLATE_HEIGHT
from ..core.entities import Candidate
from ..core.exceptions import RectificationError
from ..utils.geometry import all_finite, quad_area

logger = logging.getLogger(__name__)


class PerspectiveRectifier:
    """Warps the quad TL, TR, BR, BL to (0,0), (W,0), (W,H), (0,H)."""

    MIN_QUAD_AREA = 1.0
    MIN_DETERMINANT = 1e-9

    def __init__(self, width: int = TEMPLATE_WIDTH, height: int = TEMPLATE_HEIGHT):
        self.width = width
        self.height = height
        self._target = np.array(
            [[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float32
        )

    def homography(self, candidate: Candidate) -> np.ndarray:
        """3x3 perspective matrix for ``candidate``.

        Raises:
            RectificationError: For degenerate quads or unusable matrices
        """
        source = candidate.as_array()
        if not all_finite(source):
            raise RectificationError("Candidate corners are not finite")
        if quad_area(source) < self.MIN_QUAD_AREA:
            raise RectificationError(f"Degenerate quadrilateral (area {quad_area(source):.3f})")

        try:
            matrix = cv2.getPerspectiveTransform(source, self._target)
        except cv2.error as e:
            raise RectificationError(f"Perspective transform failed: {e}") from e

        if matrix is None or matrix.shape != (3, 3) or not all_finite(matrix):
            raise RectificationError("Perspective matrix is not finite")
        if abs(np.linalg.det(matrix)) < self.MIN_DETERMINANT:
            raise RectificationError("Perspective matrix is singular")
        return matrix

    def rectify(self, image: np.ndarray, candidate: Candidate) -> np.ndarray:
        """New width x height buffer containing the resampled card."""
        matrix = self.homography(candidate)
        try:
            return cv2.warpPerspective(image, matrix, (self.width, self.height))
        except cv2.error as e:
            raise RectificationError(f"Perspective warp failed: {e}") from e
