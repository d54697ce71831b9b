import os
import random
import logging

from dotenv import load_dotenv

from ..models.capture_settings import CaptureSettings

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

ISO_LADDER = (100, 125, 160, 200, 400, 800)
SHUTTER_LADDER = ("1/500", "1/250", "1/1000", "1/125")


class MeteringService:
    """
    Simulated light metering: every reading picks ISO and shutter speed from
    fixed ladders, the rest of the settings carry over unchanged.
    """

    def __init__(self, seed: int = None):
        if seed is None:
            seed = int(os.getenv("RANDOM_SEED", "42"))
        self._rng = random.Random(seed)

    def meter(self, current: CaptureSettings) -> CaptureSettings:
        settings = current.with_metering(
            iso=self._rng.choice(ISO_LADDER),
            shutter_speed=self._rng.choice(SHUTTER_LADDER),
        )
        logger.debug(f"Metered ISO {settings.iso}, shutter {settings.shutter_speed}")
        return settings
