"""Utility functions package."""

from .geometry import (
    order_corners, aspect_ratio, within_aspect_band, quad_area, clip_roi,
    offset_corners, all_finite,
)
from .image_utils import rotate_upright, to_gray, load_image, frame_from_image

__all__ = [
    "order_corners", "aspect_ratio", "within_aspect_band", "quad_area", "clip_roi",
    "offset_corners", "all_finite",
    "rotate_upright", "to_gray", "load_image", "frame_from_image",
]
