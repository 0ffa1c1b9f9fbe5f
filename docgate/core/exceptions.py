"""Custom exceptions for the application."""

class ApplicationError(Exception):
    """Base application error."""
    pass

class TemplateError(ApplicationError):
    """Reference template could not be loaded or built.

    Fatal at startup: without a template nothing can be validated.
    """
    pass

class ConfigError(ApplicationError):
    """Configuration-related errors."""
    pass

class RectificationError(ApplicationError):
    """Candidate quadrilateral cannot be mapped onto the template frame."""
    pass

class ExtractionError(ApplicationError):
    """Text-extraction collaborator failed to produce a result."""
    pass

class WebcamError(ApplicationError):
    """Webcam access errors."""
    pass

