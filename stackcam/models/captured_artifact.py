from __future__ import annotations
from dataclasses import dataclass
import base64

from .capture_settings import CameraMode, CaptureSettings


@dataclass(frozen=True)
class CapturedArtifact:
    """
    Final encoded image plus metadata produced by one capture.
    Created once per completed capture and never modified afterwards.
    """
    id: str
    payload: str             # JPEG data URL ("data:image/jpeg;base64,...")
    timestamp: int           # Epoch milliseconds.
    width: int
    height: int
    is_enhanced: bool        # True when the stacked pipeline was used.
    settings: CaptureSettings
    mode: CameraMode

    def payload_bytes(self) -> bytes:
        """Decode the JPEG bytes out of the data URL."""
        _, _, data = self.payload.partition(",")
        return base64.b64decode(data)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "url": self.payload,
            "timestamp": self.timestamp,
            "width": self.width,
            "height": self.height,
            "isEnhanced": self.is_enhanced,
            "metadata": {**self.settings.to_dict(), "mode": self.mode.value},
        }
