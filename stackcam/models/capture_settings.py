from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class CameraMode(str, Enum):
    PHOTO = "PHOTO"
    VIDEO = "VIDEO"
    PRO = "PRO"  # Simulates stacking / high res

    @property
    def is_enhanced(self) -> bool:
        return self is CameraMode.PRO

    @classmethod
    def parse(cls, value: "str | CameraMode") -> "CameraMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unknown camera mode: {value!r}") from None


@dataclass(frozen=True)
class CaptureSettings:
    """
    Immutable snapshot of the simulated exposure parameters at capture time.
    """
    iso: int = 100
    shutter_speed: str = "1/250"
    aperture: str = "f/1.4"
    white_balance: str = "AWB"
    exposure_compensation: str = "+0.0"

    def with_metering(self, iso: int, shutter_speed: str) -> "CaptureSettings":
        return replace(self, iso=iso, shutter_speed=shutter_speed)

    def to_dict(self) -> dict:
        return {
            "iso": self.iso,
            "shutterSpeed": self.shutter_speed,
            "aperture": self.aperture,
            "wb": self.white_balance,
            "ev": self.exposure_compensation,
        }


DEFAULT_SETTINGS = CaptureSettings()
