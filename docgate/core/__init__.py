"""Core domain entities and constants."""

from .entities import (
    Frame, Region, Candidate, MatchResult, ValidationResult,
    PersonalData, ExtractionResult, Point, Corners, Bounds,
)
from .exceptions import (
    ApplicationError, TemplateError, ConfigError, RectificationError,
    ExtractionError, WebcamError,
)
from .constants import APP_NAME, VERSION, SUPPORTED_IMAGE_FORMATS

__all__ = [
    "Frame", "Region", "Candidate", "MatchResult", "ValidationResult",
    "PersonalData", "ExtractionResult", "Point", "Corners", "Bounds",
    "ApplicationError", "TemplateError", "ConfigError", "RectificationError",
    "ExtractionError", "WebcamError",
    "APP_NAME", "VERSION", "SUPPORTED_IMAGE_FORMATS",
]
