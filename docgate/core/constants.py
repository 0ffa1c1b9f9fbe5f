"""Application-wide constants."""

APP_NAME = "docgate"
VERSION = "1.0.0"

SUPPORTED_IMAGE_FORMATS = (".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff")

# Rotations a capture source may report (degrees clockwise).
VALID_ROTATIONS = (0, 90, 180, 270)

# Canonical reference card geometry (pixels).
TEMPLATE_WIDTH = 1536
TEMPLATE_HEIGHT = 1024

# ID-1 card long side / short side.
CARD_ASPECT_RATIO = 1.586

# Orchestrator timer names.
IDENTITY_TIMER = "identity"
EXTRACTION_TIMER = "extraction"
