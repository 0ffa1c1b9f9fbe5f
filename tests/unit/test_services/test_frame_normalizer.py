"""Unit tests for rotation and contrast normalization."""
import pytest
import numpy as np

from docgate.core.entities import Frame
from docgate.services.frame_normalizer import FrameNormalizer


@pytest.fixture
def gradient_luma():
    row = np.linspace(60, 120, 320).astype(np.uint8)
    return np.tile(row, (200, 1))


def _frame(luma, rotation=0):
    h, w = luma.shape
    return Frame(width=w, height=h, rotation_degrees=rotation, luma=luma)


class TestFrameNormalizer:

    @pytest.mark.parametrize("rotation,expected", [
        (0, (320, 200)),
        (90, (200, 320)),
        (180, (320, 200)),
        (270, (200, 320)),
    ])
    def test_output_is_upright(self, gradient_luma, rotation, expected):
        normalized = FrameNormalizer().normalize(_frame(gradient_luma, rotation))

        assert (normalized.width, normalized.height) == expected
        assert normalized.image.shape == (expected[1], expected[0])
        assert normalized.image.dtype == np.uint8

    def test_frame_is_not_modified(self, gradient_luma):
        original = gradient_luma.copy()
        frame = _frame(gradient_luma, 90)
        normalized = FrameNormalizer().normalize(frame)

        np.testing.assert_array_equal(frame.luma, original)
        assert not np.shares_memory(normalized.image, frame.luma)

    def test_from_config(self, config):
        config.clahe_clip_limit = 3.5
        config.clahe_tile_grid = 4
        normalizer = FrameNormalizer.from_config(config)
        assert (normalizer.clip_limit, normalizer.tile_grid) == (3.5, 4)
