"""Domain entities (data-only structures) used across services."""
from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Tuple
import time

import numpy as np

from .constants import VALID_ROTATIONS

Point = Tuple[float, float]
Corners = Tuple[Point, Point, Point, Point]  # TL, TR, BR, BL
Bounds = Tuple[int, int, int, int]  # (x, y, width, height)


@dataclass(frozen=True, slots=True)
class Frame:
    """One captured camera frame (single-plane luma)."""
    width: int
    height: int
    rotation_degrees: int
    luma: np.ndarray
    timestamp: float = field(default_factory=time.monotonic)

    def __post_init__(self):
        if self.rotation_degrees not in VALID_ROTATIONS:
            raise ValueError(f"Unsupported rotation: {self.rotation_degrees}")
        buf = np.asarray(self.luma)
        if buf.ndim != 2 or buf.shape != (self.height, self.width):
            raise ValueError(
                f"Luma buffer shape {buf.shape} does not match {self.height}x{self.width}"
            )
        if buf.dtype != np.uint8:
            raise ValueError(f"Luma buffer must be uint8, got {buf.dtype}")
        view = buf.view()
        view.flags.writeable = False
        object.__setattr__(self, "luma", view)


@dataclass(frozen=True, slots=True)
class Region:
    """Named rectangle in canonical template coordinates."""
    name: str
    x: int
    y: int
    width: int
    height: int

    @property
    def tl(self) -> Tuple[int, int]:
        return (self.x, self.y)

    @property
    def br(self) -> Tuple[int, int]:
        return (self.x + self.width, self.y + self.height)


@dataclass(frozen=True, slots=True)
class Candidate:
    """Quadrilateral hypothesised to be the card boundary."""
    corners: Corners
    aspect_ratio: float

    def __post_init__(self):
        if len(self.corners) != 4:
            raise ValueError(f"Candidate needs exactly 4 corners, got {len(self.corners)}")
        object.__setattr__(
            self, "corners", tuple((float(x), float(y)) for x, y in self.corners)
        )

    def as_array(self) -> np.ndarray:
        """Corners as a (4, 2) float32 array in TL, TR, BR, BL order."""
        return np.array(self.corners, dtype=np.float32)


@dataclass(frozen=True, slots=True)
class MatchResult:
    good_matches: int
    threshold: int
    reference_keypoints: int = 0
    candidate_keypoints: int = 0

    @property
    def verified(self) -> bool:
        return self.good_matches > self.threshold


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of analysing one frame."""
    is_valid: bool
    corners: Optional[Corners] = None
    src_width: int = 0
    src_height: int = 0
    rotation_degrees: int = 0
    fps: float = 0.0
    good_matches: int = 0
    processing_time_ms: float = 0.0

    def __post_init__(self):
        if self.is_valid and self.corners is None:
            raise ValueError("A valid result must carry the accepted corners")
        if not self.is_valid and self.corners is not None:
            raise ValueError("Corners are only present on a valid result")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if self.corners is not None:
            d["corners"] = [list(p) for p in self.corners]
        return d


@dataclass(frozen=True, slots=True)
class PersonalData:
    """Holder fields decoded from the machine-readable zone."""
    document_number: str
    national_id: str
    name: str
    surname: str
    birth_date: str
    gender: str
    expiry_date: str
    second_name: str = ""
    nationality: str = ""


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """What the text-extraction collaborator reports back."""
    success: bool
    confidence: float = 0.0
    processing_time_ms: float = 0.0
    personal_data: Optional[PersonalData] = None
    raw_lines: Tuple[str, ...] = ()
    error_message: Optional[str] = None

    @classmethod
    def failure(cls, message: str, processing_time_ms: float = 0.0) -> "ExtractionResult":
        return cls(success=False, processing_time_ms=processing_time_ms, error_message=message)
