import numpy as np
import pytest

from stackcam.models.pixel_buffer import PixelBuffer
from stackcam.services.capture_session_service import CaptureSessionService
from stackcam.services.look_service import LookService
from stackcam.services.stacking_service import StackingService


@pytest.fixture(autouse=True)
def quiet_env(monkeypatch):
    """Keep every test offline and free of pacing delays."""
    monkeypatch.setenv("STACK_FRAME_DELAY_MS", "0")
    monkeypatch.setenv("STACK_FRAME_COUNT", "4")
    monkeypatch.setenv("LOOK_SHARPEN", "false")
    monkeypatch.delenv("LOOK_CONTRAST", raising=False)
    monkeypatch.delenv("LOOK_SATURATION", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)


@pytest.fixture
def gradient_buffer() -> PixelBuffer:
    rng = np.random.default_rng(7)
    pixels = rng.integers(0, 256, size=(6, 5, 4), dtype=np.uint8)
    return PixelBuffer(pixels)


@pytest.fixture
def look_service() -> LookService:
    return LookService(sharpen=False)


@pytest.fixture
def stacking_service(look_service) -> StackingService:
    return StackingService(look_service=look_service, frame_delay_ms=0)


class FakeAnalysis:
    def __init__(self, text="ISO 100, 1/250, f/1.4. Strong leading lines."):
        self.text = text
        self.payloads = []

    def analyze(self, payload):
        self.payloads.append(payload)
        return self.text


@pytest.fixture
def fake_analysis() -> FakeAnalysis:
    return FakeAnalysis()


@pytest.fixture
def session(look_service, stacking_service, fake_analysis) -> CaptureSessionService:
    return CaptureSessionService(
        look_service=look_service,
        stacking_service=stacking_service,
        analysis_service=fake_analysis,
    )
