"""Rotation correction and contrast normalization of incoming frames."""

import logging
from dataclasses import dataclass

import cv2
import numpy as np

from ..core.entities import Frame
from ..utils.image_utils import rotate_upright

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedFrame:
    """Upright, contrast-equalized gray image."""
    image: np.ndarray
    width: int
    height: int


class FrameNormalizer:
    """Rotates a frame upright and equalizes it with CLAHE."""

    def __init__(self, clip_limit: float = 2.0, tile_grid: int = 8):
        self.clip_limit = clip_limit
        self.tile_grid = tile_grid
        self._clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(tile_grid, tile_grid))

    @classmethod
    def from_config(cls, config) -> "FrameNormalizer":
        return cls(clip_limit=config.clahe_clip_limit, tile_grid=config.clahe_tile_grid)

    def normalize(self, frame: Frame) -> NormalizedFrame:
        upright = rotate_upright(frame.luma, frame.rotation_degrees)
        # CLAHE.apply allocates a new buffer; the frame stays untouched
        equalized = self._clahe.apply(np.ascontiguousarray(upright))
        height, width = equalized.shape[:2]
        return NormalizedFrame(image=equalized, width=width, height=height)
