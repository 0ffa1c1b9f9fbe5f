"""Image processing utilities."""

import logging
from pathlib import Path
from typing import Union

import cv2
import numpy as np

from ..core.constants import SUPPORTED_IMAGE_FORMATS
from ..core.entities import Frame

logger = logging.getLogger(__name__)


def rotate_upright(image: np.ndarray, rotation_degrees: int) -> np.ndarray:
    """Undo a clockwise sensor rotation so that the card reads upright.

    The input buffer is never modified; 0 degrees returns it unchanged.
    """
    if rotation_degrees == 0:
        return image
    if rotation_degrees == 90:
        return cv2.flip(cv2.transpose(image), 1)
    if rotation_degrees == 180:
        return cv2.flip(image, -1)
    if rotation_degrees == 270:
        return cv2.flip(cv2.transpose(image), 0)
    raise ValueError(f"Unsupported rotation: {rotation_degrees}")


def to_gray(image: np.ndarray) -> np.ndarray:
    """Single-channel version of a gray, BGR or BGRA image."""
    if image.ndim == 2:
        return image
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


def load_image(path: Union[str, Path], grayscale: bool = False) -> np.ndarray:
    """Read an image from disk.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the format is unsupported or OpenCV cannot decode the file
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Image not found: {path}")
    if path.suffix.lower() not in SUPPORTED_IMAGE_FORMATS:
        raise ValueError(f"Unsupported image format: {path.suffix}")
    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    image = cv2.imread(str(path), flag)
    if image is None:
        raise ValueError(f"Could not decode image: {path}")
    logger.debug(f"Loaded image {path} with shape {image.shape}")
    return image


def frame_from_image(image: np.ndarray, rotation_degrees: int = 0) -> Frame:
    """Wrap a gray or color image as a single-plane ``Frame``."""
    gray = np.ascontiguousarray(to_gray(image))
    height, width = gray.shape[:2]
    return Frame(width=width, height=height, rotation_degrees=rotation_degrees, luma=gray)
