from pathlib import Path
from typing import Union
from io import BytesIO
import numpy as np
import cv2
from PIL import Image as PILImage

from ..models.pixel_buffer import PixelBuffer
from ..exceptions import EncodingFailure, FrameSourceUnavailable


class PixelBufferRepository:
    """
    Handles decoding, encoding and file I/O for PixelBuffer entities.
    """

    @staticmethod
    def from_bgr(frame: np.ndarray) -> PixelBuffer:
        """Convert an OpenCV frame (gray, BGR or BGRA) into an RGBA buffer."""
        if frame.ndim == 2:
            rgba = cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
        elif frame.shape[2] == 4:
            rgba = cv2.cvtColor(frame, cv2.COLOR_BGRA2RGBA)
        else:
            rgba = cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)
        return PixelBuffer(np.ascontiguousarray(rgba, dtype=np.uint8))

    def load(self, path: Union[str, Path]) -> PixelBuffer:
        path = Path(path)
        arr = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        if arr is None:
            raise FrameSourceUnavailable(f"Image not found or unreadable: {path}", str(path))
        if arr.dtype != np.uint8:
            arr = cv2.convertScaleAbs(arr, alpha=255.0 / max(float(arr.max()), 1.0))
        return self.from_bgr(arr)

    @staticmethod
    def to_pil(buffer: PixelBuffer) -> PILImage.Image:
        # JPEG has no alpha plane, so only RGB goes to the encoder.
        return PILImage.fromarray(np.ascontiguousarray(buffer.rgb))

    def encode_jpeg(self, buffer: PixelBuffer, quality: int) -> bytes:
        out = BytesIO()
        try:
            self.to_pil(buffer).save(out, format="JPEG", quality=quality)
        except (OSError, ValueError) as err:
            raise EncodingFailure(f"JPEG encoding failed: {err}", quality) from err
        return out.getvalue()

    def save_jpeg(self, payload: bytes, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
        return path
