from __future__ import annotations

import time
import uuid
import logging
import threading
from enum import Enum
from typing import List, Optional

from ..models.capture_settings import CameraMode, CaptureSettings, DEFAULT_SETTINGS
from ..models.captured_artifact import CapturedArtifact
from ..models.pixel_buffer import PixelBuffer
from ..repositories.artifact_repository import ArtifactRepository
from ..exceptions import CaptureError, CaptureInProgress
from .image_service import ImageService
from .look_service import LookService
from .metering_service import MeteringService
from .scene_analysis_service import SceneAnalysisService
from .stacking_service import FrameSource, StackingService, sample_frame

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CaptureSessionService:
    """
    Owns one capture session: the state machine, the current simulated
    settings and the in-memory gallery of finished artifacts.

    Only one capture may run at a time. A second request while CAPTURING is
    rejected with CaptureInProgress, never queued. The lock guards state
    transitions only; sampling and processing run outside it.
    """

    def __init__(self,
                 session_id: str = None,
                 stacking_service: StackingService = None,
                 look_service: LookService = None,
                 image_service: ImageService = None,
                 metering_service: MeteringService = None,
                 analysis_service: SceneAnalysisService = None,
                 settings: CaptureSettings = DEFAULT_SETTINGS):
        self.session_id = session_id or uuid.uuid4().hex
        self.look_service = look_service or LookService()
        self.stacking_service = stacking_service or StackingService(look_service=self.look_service)
        self.image_service = image_service or ImageService()
        self.metering_service = metering_service or MeteringService()
        self._analysis_service = analysis_service
        self.settings = settings
        self.gallery = ArtifactRepository()

        self.state = CaptureState.IDLE
        self.last_error: Optional[CaptureError] = None
        self._state_lock = threading.Lock()

    # ─── State machine ─────────────────────────────────────────────
    def _begin(self, mode: CameraMode) -> None:
        with self._state_lock:
            if self.state is CaptureState.CAPTURING:
                raise CaptureInProgress(
                    f"Session {self.session_id} is already capturing", mode.value)
            self.state = CaptureState.CAPTURING

    def _finish(self, error: CaptureError = None) -> None:
        with self._state_lock:
            if error is None:
                self.state = CaptureState.COMPLETED
                self.last_error = None
            else:
                self.state = CaptureState.FAILED
                self.last_error = error
                logger.error(f"Capture failed in session {self.session_id}: {error.kind}: {error}")
                # Ready for a fresh attempt.
                self.state = CaptureState.IDLE

    @property
    def is_capturing(self) -> bool:
        return self.state is CaptureState.CAPTURING

    # ─── Public API ────────────────────────────────────────────────
    def meter(self) -> CaptureSettings:
        """Take a new simulated light reading and make it the current settings."""
        self.settings = self.metering_service.meter(self.settings)
        return self.settings

    def capture(self,
                mode: CameraMode | str,
                frame_source: FrameSource,
                settings: CaptureSettings = None,
                frame_count: int = None) -> CapturedArtifact:
        mode = CameraMode.parse(mode)
        self._begin(mode)
        snapshot = settings or self.settings

        error: Optional[CaptureError] = None
        try:
            if mode.is_enhanced:
                final = self.stacking_service.stack(frame_source, frame_count)
            else:
                final = self.look_service.apply_look(sample_frame(frame_source))
            artifact = self._build_artifact(final, mode, snapshot)
            self.gallery.add(artifact)
        except CaptureError as err:
            error = err
            raise
        except BaseException as err:
            # Interrupts included: the session must never stay CAPTURING.
            error = CaptureError(f"Capture aborted: {type(err).__name__}: {err}", mode.value)
            raise
        finally:
            self._finish(error)

        logger.info(f"Captured {artifact.id} ({mode.value}, {artifact.width}x{artifact.height}, "
                    f"enhanced={artifact.is_enhanced})")
        return artifact

    def _build_artifact(self, final: PixelBuffer, mode: CameraMode,
                        settings: CaptureSettings) -> CapturedArtifact:
        payload = self.image_service.to_data_url(final)
        return CapturedArtifact(
            id=uuid.uuid4().hex,
            payload=payload,
            timestamp=int(time.time() * 1000),
            width=final.width,
            height=final.height,
            is_enhanced=mode.is_enhanced,
            settings=settings,
            mode=mode,
        )

    # ─── Gallery ───────────────────────────────────────────────────
    def photos(self) -> List[CapturedArtifact]:
        return self.gallery.list_all()

    def get(self, artifact_id: str) -> Optional[CapturedArtifact]:
        return self.gallery.get(artifact_id)

    def discard(self, artifact_id: str) -> bool:
        return self.gallery.remove(artifact_id)

    def clear(self) -> None:
        self.gallery.clear()

    # ─── Scene analysis ────────────────────────────────────────────
    @property
    def analysis_service(self) -> SceneAnalysisService:
        if self._analysis_service is None:
            self._analysis_service = SceneAnalysisService()
        return self._analysis_service

    def analyze(self, artifact_id: str) -> Optional[str]:
        """
        Returns:
            The advisory text (or a sentinel string), None for an unknown id.
        """
        artifact = self.get(artifact_id)
        if artifact is None:
            return None
        return self.analysis_service.analyze(artifact.payload)
