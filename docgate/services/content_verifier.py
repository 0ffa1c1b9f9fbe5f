"""Feature-based comparison of a rectified candidate with the reference."""

import logging
from typing import Optional

import cv2
import numpy as np

from ..core.buffers import FrameBuffers
from ..core.entities import MatchResult
from .reference_template import ReferenceTemplate, create_feature_extractor

logger = logging.getLogger(__name__)


class ContentVerifier:
    """Counts ratio-test ORB matches between the template and a candidate.

    The template is owned by the verifier. Matching runs from reference
    descriptors to candidate descriptors with k=2; a correspondence is good
    when the best distance is below ``ratio_threshold`` times the second best.
    """

    def __init__(self, template: ReferenceTemplate, ratio_threshold: float = 0.75,
                 min_good_matches: int = 8):
        self.template = template
        self.ratio_threshold = ratio_threshold
        self.min_good_matches = min_good_matches
        self._extractor = create_feature_extractor(template.max_features)
        self._matcher = cv2.BFMatcher(cv2.NORM_HAMMING)

    @classmethod
    def from_config(cls, template: ReferenceTemplate, config) -> "ContentVerifier":
        return cls(template, ratio_threshold=config.match_ratio_threshold,
                   min_good_matches=config.min_good_matches)

    def verify(self, rectified: np.ndarray, buffers: Optional[FrameBuffers] = None) -> MatchResult:
        """Match ``rectified`` (canonical size, gray) against the template.

        Raises:
            ValueError: If ``rectified`` does not have the template's size
        """
        height, width = rectified.shape[:2]
        if (width, height) != self.template.size:
            raise ValueError(
                f"Rectified image is {width}x{height}, template is "
                f"{self.template.width}x{self.template.height}"
            )

        keypoints, descriptors = self._extractor.detectAndCompute(rectified, None)
        if buffers is not None:
            buffers.track(descriptors)

        reference = self.template.descriptors
        ref_count = len(self.template.keypoints)
        cand_count = len(keypoints) if keypoints is not None else 0

        if reference is None or descriptors is None or len(reference) == 0 or len(descriptors) == 0:
            logger.debug("Empty descriptor set, skipping match")
            return MatchResult(0, self.min_good_matches, ref_count, cand_count)

        knn = self._matcher.knnMatch(reference, descriptors, k=2)
        good = 0
        for pair in knn:
            if len(pair) > 1 and pair[0].distance < self.ratio_threshold * pair[1].distance:
                good += 1

        result = MatchResult(good, self.min_good_matches, ref_count, cand_count)
        logger.debug(f"Good matches: {good} (threshold {self.min_good_matches}, verified={result.verified})")
        return result
