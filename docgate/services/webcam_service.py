"""Webcam frame source delivering gray ``Frame`` objects."""

import cv2
import threading
import time
import logging
from typing import Optional, Callable
import numpy as np

from ..core.constants import VALID_ROTATIONS
from ..core.entities import Frame
from ..core.exceptions import WebcamError
from ..utils.image_utils import frame_from_image

logger = logging.getLogger(__name__)


class WebcamService:
    """Service for managing webcam capture and streaming."""

    def __init__(self, camera_index: int = 0, width: int = 1280, height: int = 720, fps: int = 30,
                 rotation_degrees: int = 0):
        """Initialize webcam service.

        Args:
            camera_index: Camera device index
            width: Frame width
            height: Frame height
            fps: Target frames per second
            rotation_degrees: Clockwise sensor rotation reported with every frame
        """
        if rotation_degrees not in VALID_ROTATIONS:
            raise ValueError(f"Unsupported rotation: {rotation_degrees}")
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.target_fps = fps
        self.rotation_degrees = rotation_degrees

        self._capture: Optional[cv2.VideoCapture] = None
        self._is_streaming = False
        self._stream_thread: Optional[threading.Thread] = None
        self._current_frame: Optional[Frame] = None
        self._frame_lock = threading.Lock()
        self._frame_callback: Optional[Callable[[Frame], None]] = None
        self._actual_fps = 0.0
        self._frame_count = 0
        self._fps_start_time = time.time()

    @classmethod
    def from_config(cls, config) -> "WebcamService":
        return cls(
            camera_index=config.camera_index,
            width=config.camera_width,
            height=config.camera_height,
            fps=config.camera_fps,
        )

    def start_stream(self, frame_callback: Optional[Callable[[Frame], None]] = None) -> None:
        """Open the camera and start the capture thread.

        Args:
            frame_callback: Optional callback function called for each frame

        Raises:
            WebcamError: If the camera cannot be opened
        """
        if self._is_streaming:
            logger.warning("Stream already running")
            return

        self._capture = cv2.VideoCapture(self.camera_index)
        if not self._capture.isOpened():
            self._cleanup()
            logger.error(f"Failed to open camera {self.camera_index}")
            raise WebcamError(f"Failed to open camera {self.camera_index}")

        self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._capture.set(cv2.CAP_PROP_FPS, self.target_fps)

        actual_width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(f"Camera {self.camera_index} opened: {actual_width}x{actual_height}")

        self._frame_callback = frame_callback
        self._is_streaming = True
        self._fps_start_time = time.time()
        self._frame_count = 0

        self._stream_thread = threading.Thread(target=self._stream_loop, name="docgate-webcam", daemon=True)
        self._stream_thread.start()

    def stop_stream(self):
        """Stop webcam streaming and release resources."""
        if not self._is_streaming:
            return

        self._is_streaming = False

        if self._stream_thread and self._stream_thread.is_alive():
            self._stream_thread.join(timeout=2.0)

        self._cleanup()
        logger.info("Stream stopped")

    def read_frame(self) -> Optional[Frame]:
        """Read one frame synchronously from the open camera."""
        if self._capture is None or not self._capture.isOpened():
            return None
        ret, image = self._capture.read()
        if not ret or image is None:
            return None
        return self.to_frame(image)

    def to_frame(self, image: np.ndarray) -> Frame:
        return frame_from_image(image, self.rotation_degrees)

    def _stream_loop(self):
        """Main streaming loop running in separate thread."""
        frame_delay = 1.0 / self.target_fps

        while self._is_streaming:
            loop_start = time.time()

            try:
                frame = self.read_frame()
                if frame is not None:
                    with self._frame_lock:
                        self._current_frame = frame

                    self._frame_count += 1
                    elapsed = time.time() - self._fps_start_time
                    if elapsed >= 1.0:
                        self._actual_fps = self._frame_count / elapsed
                        self._frame_count = 0
                        self._fps_start_time = time.time()

                    if self._frame_callback:
                        try:
                            self._frame_callback(frame)
                        except Exception as e:
                            logger.error(f"Error in frame callback: {e}")
                else:
                    logger.warning("Failed to read frame from camera")
                    time.sleep(0.1)

            except cv2.error as e:
                logger.error(f"Error in stream loop: {e}")
                time.sleep(0.1)

            loop_time = time.time() - loop_start
            sleep_time = max(0, frame_delay - loop_time)
            if sleep_time > 0:
                time.sleep(sleep_time)

    def get_current_frame(self) -> Optional[Frame]:
        """Most recent frame; frames are immutable so no copy is made."""
        with self._frame_lock:
            return self._current_frame

    def get_fps(self) -> float:
        return self._actual_fps

    def is_streaming(self) -> bool:
        return self._is_streaming

    def _cleanup(self):
        """Clean up camera resources."""
        if self._capture:
            self._capture.release()
            self._capture = None

        with self._frame_lock:
            self._current_frame = None

        self._frame_callback = None
