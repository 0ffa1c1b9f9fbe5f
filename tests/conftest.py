"""Pytest configuration and shared fixtures for docgate.

The reference card used throughout the suite is generated, not loaded: a
seeded drawing with textured chip, barcode and MRZ areas gives the ORB
extractor stable, distinctive features without shipping a real document.
"""
import sys
import json
import logging
from concurrent.futures import Executor, Future
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add the project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from docgate.config.defaults import BUNDLED_REFERENCE_IMAGE
from docgate.config.settings import Config
from docgate.core.entities import Frame, ValidationResult
from docgate.services.reference_template import ReferenceTemplate


# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()]
)

CARD_WIDTH = 1536
CARD_HEIGHT = 1024

MRZ_LINES = (
    "I<TSTA12B34567<8<98765432100<<",
    "9001014M3001012TST<<<<<<<<<<<6",
    "EXAMPLE<<JANE<MARIE<<<<<<<<<<<",
)


def build_reference_card(seed: int = 7) -> np.ndarray:
    """Synthetic 1536x1024 BGR identity card."""
    rng = np.random.default_rng(seed)
    card = np.full((CARD_HEIGHT, CARD_WIDTH, 3), 205, dtype=np.uint8)

    # chip: contact pads and random blocks
    x, y, w, h = 131, 329, 257, 233
    cv2.rectangle(card, (x, y), (x + w, y + h), (40, 120, 170), -1)
    for _ in range(30):
        x1 = int(rng.integers(x + 5, x + w - 45))
        y1 = int(rng.integers(y + 5, y + h - 45))
        x2 = x1 + int(rng.integers(12, 40))
        y2 = y1 + int(rng.integers(12, 40))
        color = tuple(int(c) for c in rng.integers(0, 256, 3))
        cv2.rectangle(card, (x1, y1), (x2, y2), color, -1)

    # barcode: bars of random width
    x, y, w, h = 650, 41, 548, 86
    pos = x + 4
    while pos < x + w - 8:
        bar = int(rng.integers(2, 8))
        if rng.random() < 0.55:
            cv2.rectangle(card, (pos, y + 4), (pos + bar - 1, y + h - 4), (15, 15, 15), -1)
        pos += bar

    # machine-readable zone
    for i, text in enumerate(MRZ_LINES):
        cv2.putText(card, text, (60, 730 + i * 75), cv2.FONT_HERSHEY_SIMPLEX, 1.9,
                    (10, 10, 10), 4, cv2.LINE_AA)

    # portrait and title outside the matched regions
    cv2.rectangle(card, (1120, 300), (1430, 620), (150, 150, 150), -1)
    cv2.circle(card, (1275, 420), 80, (90, 90, 90), -1)
    cv2.putText(card, "TESTLAND IDENTITY CARD", (60, 200), cv2.FONT_HERSHEY_DUPLEX, 1.4,
                (60, 60, 60), 2, cv2.LINE_AA)
    return card


def place_card(card_gray: np.ndarray, scale: float = 0.8, offset=(240, 200),
               canvas=(1300, 1700), background: int = 25):
    """Paste a scaled, axis-aligned card on a dark canvas.

    Returns the gray scene and the card corners TL, TR, BR, BL.
    """
    w = int(round(CARD_WIDTH * scale))
    h = int(round(CARD_HEIGHT * scale))
    small = cv2.resize(card_gray, (w, h), interpolation=cv2.INTER_AREA)
    scene = np.full(canvas, background, dtype=np.uint8)
    ox, oy = offset
    scene[oy:oy + h, ox:ox + w] = small
    corners = ((ox, oy), (ox + w - 1, oy), (ox + w - 1, oy + h - 1), (ox, oy + h - 1))
    return scene, corners


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture(scope="session")
def project_root():
    """Provide project root directory path."""
    return PROJECT_ROOT


@pytest.fixture(scope="session")
def reference_card():
    """Synthetic BGR reference card at canonical size."""
    return build_reference_card()


@pytest.fixture(scope="session")
def reference_card_gray(reference_card):
    return cv2.cvtColor(reference_card, cv2.COLOR_BGR2GRAY)


@pytest.fixture(scope="session")
def reference_template(reference_card):
    return ReferenceTemplate(reference_card)


@pytest.fixture
def reference_image_file(tmp_path, reference_card):
    path = tmp_path / "reference_id_card.png"
    cv2.imwrite(str(path), reference_card)
    return path


@pytest.fixture(scope="session")
def card_scene(reference_card_gray):
    """Gray camera-like frame holding the card at 80% scale, and its corners."""
    return place_card(reference_card_gray)


@pytest.fixture(scope="session")
def bundled_card_scene():
    """Gray scene holding the reference card shipped with the package."""
    return place_card(cv2.imread(BUNDLED_REFERENCE_IMAGE, cv2.IMREAD_GRAYSCALE))


@pytest.fixture
def card_frame(card_scene):
    scene, _ = card_scene
    h, w = scene.shape
    return Frame(width=w, height=h, rotation_degrees=0, luma=scene.copy())


@pytest.fixture
def blank_frame():
    luma = np.full((720, 1280), 30, dtype=np.uint8)
    return Frame(width=1280, height=720, rotation_degrees=0, luma=luma)


@pytest.fixture
def config():
    """Default configuration object."""
    return Config()


@pytest.fixture
def config_file(tmp_path, reference_image_file):
    """config.json pointing at the synthetic reference card."""
    path = tmp_path / "config.json"
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"reference_image_path": str(reference_image_file)}, f)
    return path


@pytest.fixture
def inline_executor():
    return InlineExecutor()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def valid_result():
    """Factory for a valid ValidationResult."""
    def _make(**overrides):
        data = dict(
            is_valid=True,
            corners=((10.0, 10.0), (169.0, 10.0), (169.0, 110.0), (10.0, 110.0)),
            src_width=640,
            src_height=480,
            rotation_degrees=0,
            fps=30.0,
            good_matches=42,
        )
        data.update(overrides)
        return ValidationResult(**data)
    return _make


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "integration: mark test as integration test")
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "webcam: mark test as requiring webcam access")
    config.addinivalue_line("markers", "performance: mark test as performance test")


def pytest_collection_modifyitems(config, items):
    """Add markers based on test file location."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
