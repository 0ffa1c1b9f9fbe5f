"""Default configuration values."""

from pathlib import Path
from typing import Any, Dict

# synthetic reference card shipped as package data
BUNDLED_REFERENCE_IMAGE = str(Path(__file__).resolve().parent.parent / "assets" / "reference_id_card.png")

DEFAULT_CONFIG: Dict[str, Any] = {
    # Reference template
    "reference_image_path": BUNDLED_REFERENCE_IMAGE,
    "template_width": 1536,
    "template_height": 1024,
    "max_features": 500,  # ORB keypoint cap, template and candidates alike

    # Frame normalization (CLAHE)
    "clahe_clip_limit": 2.0,
    "clahe_tile_grid": 8,

    # Candidate geometry
    "blur_kernel_size": 5,
    "canny_low_threshold": 50,
    "canny_high_threshold": 150,
    "close_kernel_size": 7,
    "max_candidates": 5,
    "approx_epsilon_ratio": 0.02,  # fraction of contour perimeter
    "target_aspect_ratio": 1.586,
    "aspect_tolerance": 0.4,

    # Content verification
    "match_ratio_threshold": 0.75,
    "min_good_matches": 8,  # verified when good matches exceed this

    # Orchestration
    "max_retries": 3,
    "extraction_timeout_ms": 5000,
    "identity_timeout_ms": 10000,
    "analysis_interval_ms": 0,

    # Webcam
    "camera_index": 0,
    "camera_width": 1280,
    "camera_height": 720,
    "camera_fps": 30,

    # Debug and Logging Settings
    "debug": False,
    "log_level": "INFO",
    "log_dir": "logs",
    "enable_file_logging": False,
    "structured_logging": False,
}
