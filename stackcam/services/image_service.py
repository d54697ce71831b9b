from pathlib import Path
from typing import Union
import os
import base64

from dotenv import load_dotenv

from ..models.pixel_buffer import PixelBuffer
from ..models.captured_artifact import CapturedArtifact
from ..repositories.pixel_buffer_repository import PixelBufferRepository
from ..exceptions import EncodingFailure

# Load environment variables
load_dotenv()

DATA_URL_PREFIX = "data:image/jpeg;base64,"


class ImageService:
    """I/O helpers.  No look or stacking logic here."""
    def __init__(self, jpeg_quality: int = None):
        if jpeg_quality is None:
            jpeg_quality = int(os.getenv("JPEG_QUALITY", "95"))
        self.jpeg_quality = jpeg_quality
        if not 1 <= self.jpeg_quality <= 100:
            raise EncodingFailure(f"JPEG quality must be in 1..100, got {self.jpeg_quality}",
                                  self.jpeg_quality)
        self.repository = PixelBufferRepository()

    def encode_jpeg(self, buffer: PixelBuffer) -> bytes:
        return self.repository.encode_jpeg(buffer, self.jpeg_quality)

    def to_data_url(self, buffer: PixelBuffer) -> str:
        """Encode a buffer as a JPEG data URL for JSON responses and the gallery."""
        jpeg_bytes = self.encode_jpeg(buffer)
        return DATA_URL_PREFIX + base64.b64encode(jpeg_bytes).decode("utf-8")

    def save_artifact(self, artifact: CapturedArtifact, folder: Union[str, Path]) -> Path:
        """
        Write an artifact's JPEG payload into `folder` as <id>.jpg.
        """
        return self.repository.save_jpeg(artifact.payload_bytes(), Path(folder) / f"{artifact.id}.jpg")
