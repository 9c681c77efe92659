"""
Camera frame source.

A background thread keeps grabbing from cv2.VideoCapture so the event loop
never blocks on the camera. The pipeline only ever sees copies of the latest
frame, each owned by the tick that fetched it.
"""

import logging
import threading
import time

import cv2
import numpy as np

from gesture_translator.errors import FrameUnavailable

logger = logging.getLogger(__name__)

CAP_WIDTH = 1280
CAP_HEIGHT = 720


class Frame:
    """Raw H x W x 3 uint8 pixel buffer. Released once the tick is done with it."""

    def __init__(self, pixels, bgr=True):
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"Expected an H x W x 3 image, got shape {pixels.shape}")
        self.pixels = pixels
        self.bgr = bgr

    @property
    def height(self):
        return self.pixels.shape[0]

    @property
    def width(self):
        return self.pixels.shape[1]

    @property
    def released(self):
        return self.pixels is None

    def release(self):
        self.pixels = None

    def __repr__(self):
        if self.released:
            return "Frame(released)"
        return f"Frame({self.width}x{self.height})"


class CameraFrameSource:
    """Wraps a webcam. is_ready() / current_frame() are safe to call every wake-up."""

    def __init__(self, camera=0, width=CAP_WIDTH, height=CAP_HEIGHT):
        self.camera = camera
        self.width = width
        self.height = height
        self._cap = None
        self._latest = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread = None

    def open(self):
        cap = cv2.VideoCapture(self.camera)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"Could not open camera {self.camera}")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        self._stop.clear()
        self._thread = threading.Thread(target=self._grab_loop, name="camera-grabber", daemon=True)
        self._thread.start()
        logger.info("Camera %s opened", self.camera)
        return self

    def _grab_loop(self):
        while not self._stop.is_set():
            ok, frame = self._cap.read()
            if not ok:
                # Camera hiccup or unplugged; is_ready() goes false until frames return
                with self._lock:
                    self._latest = None
                time.sleep(0.05)
                continue
            with self._lock:
                self._latest = frame

    def is_ready(self):
        with self._lock:
            return self._latest is not None

    def current_frame(self):
        """Return a private copy of the latest frame, or raise FrameUnavailable."""
        with self._lock:
            if self._latest is None:
                raise FrameUnavailable("No camera frame available")
            pixels = self._latest.copy()
        return Frame(pixels, bgr=True)

    def close(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        with self._lock:
            self._latest = None
        logger.info("Camera %s closed", self.camera)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
