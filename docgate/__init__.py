"""docgate - identity card presence validation for live camera feeds."""

from .core.constants import VERSION

__version__ = VERSION
