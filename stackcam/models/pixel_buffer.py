from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple
import numpy as np

from ..exceptions import InvalidBuffer


@dataclass
class PixelBuffer:
    """
    Simple data object: RGBA pixels, 8 bits per channel.
    No OpenCV logic outside the services/repositories that consume it.
    """
    pixels: np.ndarray  # Shape (H, W, 4), dtype uint8, RGBA order.

    def __post_init__(self):
        px = self.pixels
        if not isinstance(px, np.ndarray) or px.ndim != 3 or px.shape[2] != 4:
            shape = getattr(px, "shape", None)
            raise InvalidBuffer(f"Expected an (H, W, 4) array, got shape {shape}", shape)
        if px.shape[0] < 1 or px.shape[1] < 1:
            raise InvalidBuffer(f"Buffer must be at least 1x1, got {px.shape[1]}x{px.shape[0]}",
                                px.shape)
        if px.dtype != np.uint8:
            raise InvalidBuffer(f"Expected uint8 pixels, got {px.dtype}", px.dtype)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.pixels.copy())

    # ── Constructors ─────────────────────────────────────────────────
    @classmethod
    def solid(cls, width: int, height: int, rgba: Tuple[int, int, int, int]) -> "PixelBuffer":
        if width < 1 or height < 1:
            raise InvalidBuffer(f"Buffer must be at least 1x1, got {width}x{height}", (width, height))
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = rgba
        return cls(pixels)

    @classmethod
    def from_rgb(cls, rgb: np.ndarray, alpha: int = 255) -> "PixelBuffer":
        """Wrap an (H, W, 3) uint8 RGB array, adding a constant alpha plane."""
        if rgb.ndim != 3 or rgb.shape[2] != 3:
            raise InvalidBuffer(f"Expected an (H, W, 3) array, got shape {rgb.shape}", rgb.shape)
        h, w = rgb.shape[:2]
        pixels = np.empty((h, w, 4), dtype=np.uint8)
        pixels[:, :, :3] = rgb
        pixels[:, :, 3] = alpha
        return cls(pixels)

    @classmethod
    def from_float(cls, rgb: np.ndarray, alpha: np.ndarray) -> "PixelBuffer":
        """
        Round and clamp float RGB planes back to 8 bits and attach `alpha`.
        Every pipeline stage funnels its output through here.
        """
        pixels = np.empty(rgb.shape[:2] + (4,), dtype=np.uint8)
        pixels[:, :, :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
        pixels[:, :, 3] = alpha
        return cls(pixels)
