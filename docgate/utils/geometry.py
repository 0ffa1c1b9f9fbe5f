"""Quadrilateral and rectangle helpers (pure, easily unit tested)."""

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

Point = Tuple[float, float]


def order_corners(points: Iterable[Sequence[float]]) -> Tuple[Point, Point, Point, Point]:
    """Order four points as TL, TR, BR, BL.

    Points are sorted by (y, x); the two smallest-y form the top pair and the
    two largest-y the bottom pair. Within each pair the smaller x is left.
    """
    pts = [(float(p[0]), float(p[1])) for p in points]
    if len(pts) != 4:
        raise ValueError(f"Expected 4 points, got {len(pts)}")
    pts.sort(key=lambda p: (p[1], p[0]))
    top = sorted(pts[:2], key=lambda p: p[0])
    bottom = sorted(pts[2:], key=lambda p: p[0])
    return (top[0], top[1], bottom[1], bottom[0])


def aspect_ratio(width: float, height: float) -> float:
    """Long side / short side, 0 when either side is degenerate."""
    short = min(width, height)
    if short <= 0:
        return 0.0
    return max(width, height) / short


def within_aspect_band(ratio: float, target: float, tolerance: float) -> bool:
    return abs(ratio - target) < tolerance


def quad_area(corners: Sequence[Sequence[float]]) -> float:
    """Absolute area of a polygon (shoelace formula)."""
    n = len(corners)
    s = 0.0
    for i in range(n):
        x1, y1 = corners[i]
        x2, y2 = corners[(i + 1) % n]
        s += x1 * y2 - x2 * y1
    return abs(s) / 2.0


def clip_roi(roi: Optional[Tuple[int, int, int, int]], width: int, height: int) -> Optional[Tuple[int, int, int, int]]:
    """Clip an (x, y, w, h) window to the image; None if nothing is left."""
    if roi is None:
        return None
    x, y, w, h = (int(v) for v in roi)
    x1 = max(0, min(x, width))
    y1 = max(0, min(y, height))
    x2 = max(x1, min(x + w, width))
    y2 = max(y1, min(y + h, height))
    if x2 - x1 <= 0 or y2 - y1 <= 0:
        return None
    return (x1, y1, x2 - x1, y2 - y1)


def offset_corners(corners: Sequence[Point], dx: float, dy: float) -> Tuple[Point, ...]:
    return tuple((x + dx, y + dy) for x, y in corners)


def all_finite(matrix: np.ndarray) -> bool:
    return bool(np.all(np.isfinite(matrix)))
