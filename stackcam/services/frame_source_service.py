from __future__ import annotations

import os
import logging
import threading
from pathlib import Path
from typing import Iterable, List, Union

import numpy as np
import cv2
from dotenv import load_dotenv

from ..models.pixel_buffer import PixelBuffer
from ..repositories.pixel_buffer_repository import PixelBufferRepository
from ..exceptions import FrameSourceUnavailable

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class VideoCaptureFrameSource:
    """
    Live camera stream backed by cv2.VideoCapture.
    Asks for 4K first and lets the driver fall back to whatever it supports.
    """

    def __init__(self, device: Union[int, str] = None, width: int = None, height: int = None):
        if device is None:
            device = os.getenv("CAMERA_DEVICE", "0")
        if isinstance(device, str) and device.isdigit():
            device = int(device)
        self.device = device
        self.width = width or int(os.getenv("CAMERA_WIDTH", "3840"))
        self.height = height or int(os.getenv("CAMERA_HEIGHT", "2160"))
        self.repository = PixelBufferRepository()
        self._capture = None
        self._lock = threading.Lock()

    def open(self) -> "VideoCaptureFrameSource":
        with self._lock:
            if self._capture is not None and self._capture.isOpened():
                return self
            capture = cv2.VideoCapture(self.device)
            if not capture.isOpened():
                capture.release()
                raise FrameSourceUnavailable(f"Camera {self.device!r} could not be opened", self.device)
            capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self._capture = capture
            logger.info(f"Camera {self.device!r} opened at "
                        f"{int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))}")
        return self

    def sample(self) -> PixelBuffer:
        self.open()
        with self._lock:
            ok, frame = self._capture.read()
        if not ok or frame is None:
            raise FrameSourceUnavailable(f"Camera {self.device!r} returned no frame", self.device)
        return self.repository.from_bgr(frame)

    def release(self) -> None:
        with self._lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.release()


class StillImageFrameSource:
    """
    Serves the same still image on every sample, optionally with Gaussian
    sensor noise so stacking has something to average out.
    """

    def __init__(self, image: Union[str, Path, PixelBuffer], noise_sigma: float = None, seed: int = None):
        if isinstance(image, PixelBuffer):
            self.base = image
        else:
            self.base = PixelBufferRepository().load(image)
        if noise_sigma is None:
            noise_sigma = float(os.getenv("STILL_NOISE_SIGMA", "0"))
        self.noise_sigma = noise_sigma
        if seed is None:
            seed = int(os.getenv("RANDOM_SEED", "42"))
        self._rng = np.random.default_rng(seed)

    def sample(self) -> PixelBuffer:
        if self.noise_sigma <= 0:
            return self.base.copy()
        noise = self._rng.normal(0.0, self.noise_sigma, size=self.base.rgb.shape)
        return PixelBuffer.from_float(self.base.rgb.astype(np.float64) + noise, self.base.alpha)


class SequenceFrameSource:
    """
    Replays a fixed list of frames in order; raises once they run out.
    """

    def __init__(self, frames: Iterable[PixelBuffer]):
        self.frames: List[PixelBuffer] = list(frames)
        self.samples_taken = 0

    def sample(self) -> PixelBuffer:
        if self.samples_taken >= len(self.frames):
            raise FrameSourceUnavailable(
                f"Sequence exhausted after {len(self.frames)} frames", self.samples_taken)
        frame = self.frames[self.samples_taken]
        self.samples_taken += 1
        return frame
