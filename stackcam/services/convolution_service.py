import logging
import numpy as np
import cv2

from ..models.pixel_buffer import PixelBuffer
from ..models.kernel import Kernel
from ..exceptions import InvalidBuffer, InvalidKernel

logger = logging.getLogger(__name__)


class ConvolutionService:
    """
    Generic 2D convolution over RGBA pixel buffers.
    *   RGB channels are filtered independently; alpha is copied through.
    *   Samples outside the image contribute nothing (zero border), so
        kernels whose weights sum to 1 darken the edges.
    """

    @staticmethod
    def _validate(buffer: PixelBuffer, kernel: Kernel) -> None:
        if not isinstance(kernel, Kernel):
            raise InvalidKernel(f"Expected a Kernel, got {type(kernel).__name__}", kernel)
        if not isinstance(buffer, PixelBuffer):
            raise InvalidBuffer(f"Expected a PixelBuffer, got {type(buffer).__name__}", buffer)

    def convolve(self, buffer: PixelBuffer, kernel: Kernel) -> PixelBuffer:
        """
        Args:
            buffer (PixelBuffer): Source pixels, never modified.
            kernel (Kernel): Odd-sized weights, applied row-major over the
                footprint centred on each pixel.

        Returns:
            (PixelBuffer): A new buffer of the same size, clamped to [0, 255].
        """
        self._validate(buffer, kernel)

        rgb = buffer.rgb.astype(np.float32)
        # filter2D correlates (no kernel flip) and BORDER_CONSTANT pads with zeros.
        filtered = cv2.filter2D(
            rgb,
            ddepth=cv2.CV_32F,
            kernel=np.asarray(kernel.weights, dtype=np.float32),
            anchor=(kernel.half, kernel.half),
            borderType=cv2.BORDER_CONSTANT,
        )

        logger.debug(f"Convolved {buffer.width}x{buffer.height} buffer with {kernel.side}x{kernel.side} kernel")
        return PixelBuffer.from_float(filtered, buffer.alpha)
