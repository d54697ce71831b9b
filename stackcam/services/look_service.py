from __future__ import annotations

import os
import logging
from typing import Callable, Tuple

import numpy as np
from dotenv import load_dotenv

from ..models.pixel_buffer import PixelBuffer
from ..models.kernel import Kernel, SHARPEN_KERNEL
from .convolution_service import ConvolutionService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# ─── Look constants ───────────────────────────────────────────────
SHADOW_TINT: Tuple[int, int, int] = (0, 0, 20)        # cool shadows
SHADOW_TINT_ALPHA = 0.10
HIGHLIGHT_TINT: Tuple[int, int, int] = (255, 150, 50)  # warm highlights
HIGHLIGHT_TINT_ALPHA = 0.15
CONTRAST = 1.15
SATURATION = 1.10
CONTRAST_PIVOT = 128.0
LUMA_WEIGHTS = np.array([0.2126, 0.7152, 0.0722])

BlendFunction = Callable[[np.ndarray, np.ndarray], np.ndarray]


# ─── Blend modes: (base, blend) -> result, all in 0..255 floats ───
def overlay(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    base = np.asarray(base, dtype=np.float64)
    blend = np.asarray(blend, dtype=np.float64)
    return np.where(
        base < 128,
        2.0 * base * blend / 255.0,
        255.0 - 2.0 * (255.0 - base) * (255.0 - blend) / 255.0,
    )


def soft_light(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    """
    W3C soft-light: darkens where blend < 128, lightens where blend >= 128,
    pivoting on the base colour.
    """
    b = np.asarray(base, dtype=np.float64) / 255.0
    s = np.broadcast_to(np.asarray(blend, dtype=np.float64) / 255.0, b.shape)
    d = np.where(b <= 0.25, ((16.0 * b - 12.0) * b + 4.0) * b, np.sqrt(b))
    out = np.where(
        s <= 0.5,
        b - (1.0 - 2.0 * s) * b * (1.0 - b),
        b + (2.0 * s - 1.0) * (d - b),
    )
    return out * 255.0


class LookService:
    """
    Deterministic colour pipeline that gives captures their signature look:
    cool shadows, warm highlights, punchy contrast and saturation.

    Every stage returns a fresh PixelBuffer, so callers keep their input
    untouched. Re-applying the look intensifies it; it is not idempotent.
    """

    def __init__(self, sharpen: bool | None = None, convolution_service: ConvolutionService | None = None):
        if sharpen is None:
            sharpen = os.getenv("LOOK_SHARPEN", "false").lower() in ("1", "true", "yes")
        self.sharpen = sharpen
        self.contrast = float(os.getenv("LOOK_CONTRAST", str(CONTRAST)))
        self.saturation = float(os.getenv("LOOK_SATURATION", str(SATURATION)))
        self.convolution_service = convolution_service or ConvolutionService()

    # ─── Public API ────────────────────────────────────────────────
    def apply_look(self, buffer: PixelBuffer) -> PixelBuffer:
        out = buffer
        if self.sharpen:
            out = self.sharpen_buffer(out)
        out = self.tint(out, SHADOW_TINT, SHADOW_TINT_ALPHA, overlay)
        out = self.tint(out, HIGHLIGHT_TINT, HIGHLIGHT_TINT_ALPHA, soft_light)
        out = self.adjust_contrast_saturation(out)
        logger.debug(f"Applied look to {buffer.width}x{buffer.height} buffer (sharpen={self.sharpen})")
        return out

    def sharpen_buffer(self, buffer: PixelBuffer, kernel: Kernel = SHARPEN_KERNEL) -> PixelBuffer:
        return self.convolution_service.convolve(buffer, kernel)

    @staticmethod
    def tint(
            buffer: PixelBuffer,
            color: Tuple[int, int, int],
            alpha: float,
            blend_fn: BlendFunction,
    ) -> PixelBuffer:
        """
        Composite a flat colour over the whole buffer with `blend_fn` at
        opacity `alpha`: (1 - alpha) * base + alpha * blend_fn(base, color).
        """
        base = buffer.rgb.astype(np.float64)
        tint_rgb = np.asarray(color, dtype=np.float64)
        mixed = (1.0 - alpha) * base + alpha * blend_fn(base, tint_rgb)
        return PixelBuffer.from_float(mixed, buffer.alpha)

    def adjust_contrast_saturation(self, buffer: PixelBuffer) -> PixelBuffer:
        rgb = buffer.rgb.astype(np.float64)

        # Contrast around mid-gray, clamped before saturation sees it.
        rgb = np.clip((rgb - CONTRAST_PIVOT) * self.contrast + CONTRAST_PIVOT, 0.0, 255.0)

        luma = rgb @ LUMA_WEIGHTS
        rgb = luma[:, :, np.newaxis] + (rgb - luma[:, :, np.newaxis]) * self.saturation
        return PixelBuffer.from_float(rgb, buffer.alpha)
