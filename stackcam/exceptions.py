from __future__ import annotations
from typing import Any


class CaptureError(Exception):
    """
    Base class for every failure the capture pipeline surfaces.
    `param` holds the offending value so callers can decide on retry/backoff.
    """
    kind = "CaptureError"

    def __init__(self, message: str, param: Any = None):
        super().__init__(message)
        self.param = param

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": str(self), "param": repr(self.param)}


class InvalidKernel(CaptureError, ValueError):
    kind = "InvalidKernel"


class InvalidBuffer(CaptureError, ValueError):
    kind = "InvalidBuffer"


class InvalidFrameCount(CaptureError, ValueError):
    kind = "InvalidFrameCount"


class FrameSourceUnavailable(CaptureError):
    kind = "FrameSourceUnavailable"


class CaptureInProgress(CaptureError):
    kind = "CaptureInProgress"


class EncodingFailure(CaptureError):
    kind = "EncodingFailure"
