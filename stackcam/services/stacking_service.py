from __future__ import annotations

import os
import time
import logging
from typing import Protocol

import numpy as np
from dotenv import load_dotenv

from ..models.pixel_buffer import PixelBuffer
from ..exceptions import CaptureError, FrameSourceUnavailable, InvalidBuffer, InvalidFrameCount
from .look_service import LookService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_FRAME_COUNT = 4


class FrameSource(Protocol):
    """Anything that can hand out a fresh sample of the current frame."""

    def sample(self) -> PixelBuffer:
        ...


def sample_frame(frame_source: FrameSource) -> PixelBuffer:
    """
    Take one sample, turning any unexpected source error into
    FrameSourceUnavailable so the caller sees a single failure kind.
    """
    try:
        frame = frame_source.sample()
    except CaptureError:
        raise
    except Exception as err:
        raise FrameSourceUnavailable(f"Frame source failed: {err}", type(frame_source).__name__) from err
    if not isinstance(frame, PixelBuffer):
        raise FrameSourceUnavailable("Frame source returned no frame", type(frame_source).__name__)
    return frame


def blend_over(accumulator: PixelBuffer, frame: PixelBuffer, weight: float) -> PixelBuffer:
    """
    Draw `frame` over `accumulator` at opacity `weight` and quantize back to
    8 bits, the way an 8-bit canvas does after every draw call.
    """
    # Source-over with straight alpha: the frame covers weight * its own alpha.
    src_cover = (frame.alpha.astype(np.float64) / 255.0 * weight)[:, :, np.newaxis]
    acc_cover = (accumulator.alpha.astype(np.float64) / 255.0)[:, :, np.newaxis] * (1.0 - src_cover)
    out_a = src_cover + acc_cover

    premul = frame.rgb.astype(np.float64) * src_cover + accumulator.rgb.astype(np.float64) * acc_cover
    rgb = np.divide(premul, out_a, out=np.zeros_like(premul), where=out_a > 0)
    alpha = np.clip(np.rint(out_a[:, :, 0] * 255.0), 0, 255).astype(np.uint8)
    return PixelBuffer.from_float(rgb, alpha)


class StackingService:
    """
    Multi-frame "stacking": samples the frame source several times and
    blends every new sample over a running composite with opacity 1/i.

    The composite is quantized after each blend, so it drifts from a plain
    mean by rounding; that recursive behaviour is kept on purpose.
    """

    def __init__(self, look_service: LookService | None = None, frame_delay_ms: float | None = None):
        self.look_service = look_service or LookService()
        if frame_delay_ms is None:
            frame_delay_ms = float(os.getenv("STACK_FRAME_DELAY_MS", "50"))
        self.frame_delay = max(frame_delay_ms, 0.0) / 1000.0
        self.default_frame_count = int(os.getenv("STACK_FRAME_COUNT", str(DEFAULT_FRAME_COUNT)))

    # ─── Public API ────────────────────────────────────────────────
    def stack(self, frame_source: FrameSource, frame_count: int | None = None) -> PixelBuffer:
        merged = self.composite(frame_source, frame_count)
        return self.look_service.apply_look(merged)

    def composite(self, frame_source: FrameSource, frame_count: int | None = None) -> PixelBuffer:
        """
        Build the pre-look composite.

        Raises:
            InvalidFrameCount: frame_count < 1.
            FrameSourceUnavailable: the source could not produce a sample.
            InvalidBuffer: a sample's size differs from the first one.
        """
        if frame_count is None:
            frame_count = self.default_frame_count
        if isinstance(frame_count, bool) or not isinstance(frame_count, (int, np.integer)) or frame_count < 1:
            raise InvalidFrameCount(f"frame_count must be a positive integer, got {frame_count!r}", frame_count)

        accumulator: PixelBuffer | None = None
        for i in range(1, frame_count + 1):
            frame = sample_frame(frame_source)

            if accumulator is None:
                accumulator = frame.copy()
            else:
                if frame.pixels.shape != accumulator.pixels.shape:
                    raise InvalidBuffer(
                        f"Frame {i} is {frame.width}x{frame.height}, "
                        f"expected {accumulator.width}x{accumulator.height}",
                        (frame.width, frame.height),
                    )
                accumulator = blend_over(accumulator, frame, 1.0 / i)

            logger.debug(f"Stacked frame {i}/{frame_count}")

            # Let sensor noise vary between samples.
            if i < frame_count and self.frame_delay > 0:
                time.sleep(self.frame_delay)

        logger.info(f"Stacked {frame_count} frames at {accumulator.width}x{accumulator.height}")
        return accumulator
