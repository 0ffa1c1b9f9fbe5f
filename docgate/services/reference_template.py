"""Canonical reference card: image, region mask and ORB features."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from ..core.constants import TEMPLATE_WIDTH, TEMPLATE_HEIGHT
from ..core.entities import Region
from ..core.exceptions import TemplateError
from ..core.performance import performance_timer
from ..utils.image_utils import to_gray

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TemplateLayout:
    """Named regions of the card in canonical coordinates.

    Only the regions listed in ``mask_regions`` contribute features.
    """
    regions: Tuple[Region, ...]
    mask_regions: Tuple[str, ...]

    def region(self, name: str) -> Region:
        for r in self.regions:
            if r.name == name:
                return r
        raise KeyError(name)

    def masked(self) -> Tuple[Region, ...]:
        return tuple(self.region(name) for name in self.mask_regions)


DEFAULT_LAYOUT = TemplateLayout(
    regions=(
        Region("chip", 131, 329, 257, 233),
        Region("barcode", 650, 41, 548, 86),
        Region("mrz", 32, 663, 1479, 259),
        Region("pen_number", 1486, 173, 49, 262),
        Region("ministry_text", 418, 234, 640, 314),
    ),
    mask_regions=("chip", "mrz", "barcode"),
)


def create_feature_extractor(max_features: int = 500):
    """The ORB extractor shared by the template and the candidates."""
    return cv2.ORB_create(nfeatures=max_features)


class ReferenceTemplate:
    """Immutable reference the content verifier matches against.

    Built once at startup; the constructor accepts any BGR or gray image and
    resizes it to the canonical size before computing features inside the
    region mask.
    """

    def __init__(self, image: np.ndarray, layout: TemplateLayout = DEFAULT_LAYOUT,
                 width: int = TEMPLATE_WIDTH, height: int = TEMPLATE_HEIGHT,
                 max_features: int = 500):
        if image is None or image.size == 0:
            raise TemplateError("Reference image is empty")

        self.width = width
        self.height = height
        self.layout = layout
        self.max_features = max_features

        resized = cv2.resize(image, (width, height), interpolation=cv2.INTER_AREA)
        self._image = self._frozen(resized)
        self._gray = self._frozen(to_gray(resized))
        self._mask = self._frozen(self._build_mask())

        extractor = create_feature_extractor(max_features)
        keypoints, descriptors = extractor.detectAndCompute(self._gray, self._mask)
        self._keypoints = tuple(keypoints or ())
        self._descriptors = None if descriptors is None else self._frozen(descriptors)

        logger.info(
            f"Reference template built: {width}x{height}, "
            f"{len(self._keypoints)} keypoints in {len(layout.mask_regions)} regions"
        )
        if not self._keypoints:
            logger.warning("Reference template has no keypoints; no frame will ever verify")

    @classmethod
    @performance_timer("template.load")
    def from_file(cls, path: Union[str, Path], layout: TemplateLayout = DEFAULT_LAYOUT,
                  width: int = TEMPLATE_WIDTH, height: int = TEMPLATE_HEIGHT,
                  max_features: int = 500) -> "ReferenceTemplate":
        """Load the canonical card image from disk.

        Raises:
            TemplateError: If the file is missing or cannot be decoded
        """
        path = Path(path)
        if not path.is_file():
            logger.error(f"Reference image not found: {path}")
            raise TemplateError(f"Reference image not found: {path}")

        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            logger.error(f"Failed to load reference image: {path}")
            raise TemplateError(f"Failed to load reference image: {path}")

        logger.info(f"Reference image loaded: {path}")
        return cls(image, layout=layout, width=width, height=height, max_features=max_features)

    @classmethod
    def from_config(cls, config) -> "ReferenceTemplate":
        return cls.from_file(
            config.reference_image_path,
            width=config.template_width,
            height=config.template_height,
            max_features=config.max_features,
        )

    def _build_mask(self) -> np.ndarray:
        mask = np.zeros((self.height, self.width), dtype=np.uint8)
        for region in self.layout.masked():
            cv2.rectangle(mask, region.tl, region.br, 255, thickness=-1)
        return mask

    @staticmethod
    def _frozen(array: np.ndarray) -> np.ndarray:
        array.flags.writeable = False
        return array

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height)"""
        return (self.width, self.height)

    @property
    def image(self) -> np.ndarray:
        return self._image

    @property
    def gray(self) -> np.ndarray:
        return self._gray

    @property
    def mask(self) -> np.ndarray:
        return self._mask

    @property
    def keypoints(self) -> tuple:
        return self._keypoints

    @property
    def descriptors(self) -> Optional[np.ndarray]:
        return self._descriptors
