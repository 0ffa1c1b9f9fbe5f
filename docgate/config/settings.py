"""Configuration dataclass and loading utilities.

Provides a strongly-typed configuration object that is injected into the
services instead of relying on a global module-level dictionary.

Precedence (lowest to highest): ``DEFAULT_CONFIG`` <- JSON file <-
``DOCGATE_*`` environment variables.
"""
from __future__ import annotations
from dataclasses import dataclass, field, asdict, fields
from typing import Any, Dict, Optional
import json, os, logging
from .defaults import DEFAULT_CONFIG
from .env_config import load_environment_config, EnvironmentConfig
from ..core.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Config:
    # Reference template
    reference_image_path: str = DEFAULT_CONFIG["reference_image_path"]
    template_width: int = DEFAULT_CONFIG["template_width"]
    template_height: int = DEFAULT_CONFIG["template_height"]
    max_features: int = DEFAULT_CONFIG["max_features"]

    # Frame normalization
    clahe_clip_limit: float = DEFAULT_CONFIG["clahe_clip_limit"]
    clahe_tile_grid: int = DEFAULT_CONFIG["clahe_tile_grid"]

    # Candidate geometry
    blur_kernel_size: int = DEFAULT_CONFIG["blur_kernel_size"]
    canny_low_threshold: int = DEFAULT_CONFIG["canny_low_threshold"]
    canny_high_threshold: int = DEFAULT_CONFIG["canny_high_threshold"]
    close_kernel_size: int = DEFAULT_CONFIG["close_kernel_size"]
    max_candidates: int = DEFAULT_CONFIG["max_candidates"]
    approx_epsilon_ratio: float = DEFAULT_CONFIG["approx_epsilon_ratio"]
    target_aspect_ratio: float = DEFAULT_CONFIG["target_aspect_ratio"]
    aspect_tolerance: float = DEFAULT_CONFIG["aspect_tolerance"]

    # Content verification
    match_ratio_threshold: float = DEFAULT_CONFIG["match_ratio_threshold"]
    min_good_matches: int = DEFAULT_CONFIG["min_good_matches"]

    # Orchestration
    max_retries: int = DEFAULT_CONFIG["max_retries"]
    extraction_timeout_ms: int = DEFAULT_CONFIG["extraction_timeout_ms"]
    identity_timeout_ms: int = DEFAULT_CONFIG["identity_timeout_ms"]
    analysis_interval_ms: int = DEFAULT_CONFIG["analysis_interval_ms"]

    # Webcam
    camera_index: int = DEFAULT_CONFIG["camera_index"]
    camera_width: int = DEFAULT_CONFIG["camera_width"]
    camera_height: int = DEFAULT_CONFIG["camera_height"]
    camera_fps: int = DEFAULT_CONFIG["camera_fps"]

    # Debug and logging
    debug: bool = DEFAULT_CONFIG["debug"]
    log_level: str = DEFAULT_CONFIG["log_level"]
    log_dir: str = DEFAULT_CONFIG["log_dir"]
    enable_file_logging: bool = DEFAULT_CONFIG["enable_file_logging"]
    structured_logging: bool = DEFAULT_CONFIG["structured_logging"]

    # Arbitrary extra values retained for forward compatibility
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        # merge extra keys at top-level for saving
        extra = d.pop("extra", {})
        d.update(extra)
        return d

    def get(self, key: str, default: Any = None) -> Any:
        if key in _FIELD_NAMES:
            return getattr(self, key)
        return self.extra.get(key, default)


_FIELD_NAMES = frozenset(f.name for f in fields(Config) if f.name != "extra")

# key -> (min, max), inclusive
NUMERIC_RANGES: Dict[str, tuple] = {
    "template_width": (64, 8192),
    "template_height": (64, 8192),
    "max_features": (10, 10000),
    "clahe_clip_limit": (0.1, 40.0),
    "clahe_tile_grid": (1, 64),
    "blur_kernel_size": (1, 31),
    "canny_low_threshold": (0, 1000),
    "canny_high_threshold": (0, 1000),
    "close_kernel_size": (1, 31),
    "max_candidates": (1, 50),
    "approx_epsilon_ratio": (0.001, 0.2),
    "target_aspect_ratio": (1.0, 5.0),
    "aspect_tolerance": (0.0, 2.0),
    "match_ratio_threshold": (0.1, 1.0),
    "min_good_matches": (1, 500),
    "max_retries": (1, 20),
    "extraction_timeout_ms": (100, 120000),
    "identity_timeout_ms": (100, 600000),
    "analysis_interval_ms": (0, 10000),
    "camera_index": (0, 64),
    "camera_width": (160, 7680),
    "camera_height": (120, 4320),
    "camera_fps": (1, 120),
}

# Kernels must be odd for GaussianBlur.
ODD_KEYS = ("blur_kernel_size",)


def load_config(path: str = "config.json", env_file: Optional[str] = None) -> Config:
    """Load configuration from a JSON file, then apply environment overrides.

    Unreadable files and invalid values are logged and replaced by defaults;
    loading never fails.

    Args:
        path: Path to config.json file
        env_file: Path to .env file (optional)
    """
    data: Dict[str, Any] = {}

    if os.path.isfile(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                loaded_data = json.load(f)
            if loaded_data is None:
                logger.warning(f"Configuration file '{path}' is empty, using defaults")
            elif not isinstance(loaded_data, dict):
                logger.error(f"Configuration file '{path}' does not contain a valid JSON object, using defaults")
            else:
                data = loaded_data
                logger.info(f"Successfully loaded configuration from '{path}'")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse JSON configuration file '{path}': {e}. Using defaults.")
        except PermissionError:
            logger.error(f"Permission denied reading configuration file '{path}'. Using defaults.")
        except OSError as e:
            logger.error(f"Error reading configuration file '{path}': {e}. Using defaults.")
    else:
        logger.info(f"Configuration file '{path}' does not exist. Using defaults.")

    env_config = load_environment_config(env_file)

    merged = {**DEFAULT_CONFIG, **data}
    merged = _apply_environment_overrides(merged, env_config)
    merged = _sanitize_config_values(merged)

    # capture unknown keys
    extra = {k: v for k, v in merged.items() if k not in _FIELD_NAMES}
    if extra:
        logger.info(f"Found extra configuration keys: {list(extra.keys())}")

    return Config(**{k: merged[k] for k in _FIELD_NAMES}, extra=extra)


def save_config(cfg: Config, path: str = "config.json") -> None:
    """Save configuration to JSON, keeping a backup of the previous file.

    Raises:
        ConfigError: If the file cannot be written
    """
    backup_path = f"{path}.backup"
    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as src, open(backup_path, "w", encoding="utf-8") as dst:
                dst.write(src.read())
            logger.debug(f"Created backup configuration at '{backup_path}'")
        except OSError as e:
            logger.warning(f"Failed to create configuration backup: {e}")

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(cfg.to_dict(), f, indent=2, ensure_ascii=False)
    except (OSError, TypeError) as e:
        logger.error(f"Error saving configuration file '{path}': {e}")
        raise ConfigError(f"Cannot save configuration to '{path}': {e}") from e

    logger.info(f"Configuration saved successfully to '{path}'")


def _apply_environment_overrides(config_dict: Dict[str, Any], env_config: EnvironmentConfig) -> Dict[str, Any]:
    updated = {**config_dict, **env_config.overrides}
    if env_config.overrides.get("debug"):
        updated["log_level"] = "DEBUG"
    if env_config.has_overrides:
        logger.debug("Applied environment variable overrides to configuration")
    return updated


def _sanitize_config_values(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Replace out-of-range or wrongly-typed values by their defaults."""
    sanitized = config_dict.copy()

    for key, (min_val, max_val) in NUMERIC_RANGES.items():
        value = sanitized.get(key)
        default = DEFAULT_CONFIG[key]
        expected = float if isinstance(default, float) else int
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            logger.warning(f"Value {key}={value!r} is not numeric, using default {default}")
            sanitized[key] = default
            continue
        if expected is int and not float(value).is_integer():
            logger.warning(f"Value {key}={value} is not an integer, using default {default}")
            sanitized[key] = default
            continue
        if not (min_val <= value <= max_val):
            logger.warning(f"Value {key}={value} out of range [{min_val}, {max_val}], using default {default}")
            sanitized[key] = default
            continue
        sanitized[key] = expected(value)

    for key in ODD_KEYS:
        if sanitized[key] % 2 == 0:
            logger.warning(f"Value {key}={sanitized[key]} must be odd, using default {DEFAULT_CONFIG[key]}")
            sanitized[key] = DEFAULT_CONFIG[key]

    if sanitized["canny_low_threshold"] > sanitized["canny_high_threshold"]:
        logger.warning("canny_low_threshold exceeds canny_high_threshold, using defaults for both")
        sanitized["canny_low_threshold"] = DEFAULT_CONFIG["canny_low_threshold"]
        sanitized["canny_high_threshold"] = DEFAULT_CONFIG["canny_high_threshold"]

    for key in ("reference_image_path", "log_dir", "log_level"):
        value = sanitized.get(key)
        if not isinstance(value, str) or not value.strip():
            logger.warning(f"Setting '{key}' must be a non-empty string. Using default.")
            sanitized[key] = DEFAULT_CONFIG[key]

    for key in ("debug", "enable_file_logging", "structured_logging"):
        if not isinstance(sanitized.get(key), bool):
            logger.warning(f"Setting '{key}' must be a boolean. Using default.")
            sanitized[key] = DEFAULT_CONFIG[key]

    return sanitized


__all__ = ["Config", "load_config", "save_config"]
