"""Unit tests for card-shaped quadrilateral detection."""
import pytest
import numpy as np
import cv2

from docgate.core.buffers import FrameBuffers
from docgate.services.candidate_detector import CandidateDetector


def _scene(rects, size=(720, 1280), background=30, fill=220):
    image = np.full(size, background, dtype=np.uint8)
    for x, y, w, h in rects:
        cv2.rectangle(image, (x, y), (x + w - 1, y + h - 1), fill, -1)
    return image


def _assert_corners_near(actual, expected, tol=4.0):
    for (ax, ay), (ex, ey) in zip(actual, expected):
        assert abs(ax - ex) <= tol and abs(ay - ey) <= tol, (actual, expected)


CARD = (300, 150, 634, 400)
CARD_CORNERS = ((300, 150), (933, 150), (933, 549), (300, 549))


class TestCandidateDetector:

    def test_finds_card_shaped_rectangle(self):
        candidates = CandidateDetector().detect(_scene([CARD]))

        assert len(candidates) == 1
        _assert_corners_near(candidates[0].corners, CARD_CORNERS)
        assert candidates[0].aspect_ratio == pytest.approx(1.586, abs=0.05)

    def test_rejects_square(self):
        assert CandidateDetector().detect(_scene([(300, 150, 400, 400)])) == []

    def test_rejects_elongated_rectangle(self):
        assert CandidateDetector().detect(_scene([(300, 150, 630, 300)])) == []

    def test_blank_frame_has_no_candidates(self):
        assert CandidateDetector().detect(np.full((720, 1280), 30, np.uint8)) == []

    def test_rotated_card_is_found(self):
        image = np.full((720, 1280), 30, dtype=np.uint8)
        box = cv2.boxPoints(((640, 360), (634, 400), 20)).astype(np.int32)
        cv2.fillPoly(image, [box], 220)

        candidates = CandidateDetector().detect(image)
        assert len(candidates) == 1
        tl, tr, br, bl = candidates[0].corners
        assert tl[1] < bl[1] and tr[1] < br[1]
        assert tl[0] < tr[0] and bl[0] < br[0]

    def test_candidate_count_is_capped(self):
        rects = [(40 + i * 180, 100, 159, 100) for i in range(7)]
        image = _scene(rects)

        assert len(CandidateDetector(max_candidates=5).detect(image)) <= 5
        assert len(CandidateDetector(max_candidates=10).detect(image)) > 5

    def test_region_of_interest_keeps_full_frame_coordinates(self):
        candidates = CandidateDetector().detect(_scene([CARD]), roi=(200, 100, 900, 600))

        assert len(candidates) == 1
        _assert_corners_near(candidates[0].corners, CARD_CORNERS)

    def test_region_of_interest_excludes_card(self):
        assert CandidateDetector().detect(_scene([CARD]), roi=(1000, 0, 280, 720)) == []

    def test_region_of_interest_outside_frame(self):
        assert CandidateDetector().detect(_scene([CARD]), roi=(2000, 2000, 100, 100)) == []

    def test_edge_maps_are_owned_by_scope(self):
        before = FrameBuffers.outstanding()
        with FrameBuffers("test") as scope:
            CandidateDetector().detect(_scene([CARD]), buffers=scope)
            assert scope.live_count == 3
        assert FrameBuffers.outstanding() == before

    def test_from_config(self, config):
        config.max_candidates = 2
        config.aspect_tolerance = 0.1
        detector = CandidateDetector.from_config(config)
        assert detector.max_candidates == 2
        assert detector.aspect_tolerance == 0.1
