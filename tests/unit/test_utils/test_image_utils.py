"""Unit tests for image helpers."""
import pytest
import numpy as np
import cv2

from docgate.utils.image_utils import frame_from_image, load_image, rotate_upright, to_gray


@pytest.fixture
def sample():
    return np.arange(12, dtype=np.uint8).reshape(3, 4)


class TestRotateUpright:

    def test_zero_is_identity(self, sample):
        assert rotate_upright(sample, 0) is sample

    def test_90_rotates_clockwise(self, sample):
        out = rotate_upright(sample, 90)
        assert out.shape == (4, 3)
        np.testing.assert_array_equal(out, np.rot90(sample, -1))

    def test_180_is_point_reflection(self, sample):
        np.testing.assert_array_equal(rotate_upright(sample, 180), sample[::-1, ::-1])

    def test_270_rotates_counter_clockwise(self, sample):
        out = rotate_upright(sample, 270)
        assert out.shape == (4, 3)
        np.testing.assert_array_equal(out, np.rot90(sample, 1))

    def test_90_and_270_are_inverse(self, sample):
        np.testing.assert_array_equal(rotate_upright(rotate_upright(sample, 90), 270), sample)

    def test_source_not_mutated(self, sample):
        original = sample.copy()
        for rotation in (90, 180, 270):
            rotate_upright(sample, rotation)
        np.testing.assert_array_equal(sample, original)

    def test_invalid_rotation(self, sample):
        with pytest.raises(ValueError):
            rotate_upright(sample, 45)


def test_to_gray_handles_all_layouts():
    gray = np.zeros((4, 4), np.uint8)
    assert to_gray(gray) is gray
    assert to_gray(np.zeros((4, 4, 3), np.uint8)).shape == (4, 4)
    assert to_gray(np.zeros((4, 4, 4), np.uint8)).shape == (4, 4)


def test_frame_from_color_image():
    frame = frame_from_image(np.zeros((30, 40, 3), np.uint8), rotation_degrees=180)
    assert (frame.width, frame.height, frame.rotation_degrees) == (40, 30, 180)


class TestLoadImage:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "nope.png")

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ValueError):
            load_image(path)

    def test_round_trip(self, tmp_path):
        path = tmp_path / "img.png"
        cv2.imwrite(str(path), np.full((5, 6, 3), 100, np.uint8))
        assert load_image(path).shape == (5, 6, 3)
        assert load_image(path, grayscale=True).shape == (5, 6)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "scan.gif"
        path.write_bytes(b"GIF89a")
        with pytest.raises(ValueError):
            load_image(path)
