from __future__ import annotations

import os
import base64
import logging
from typing import Callable

from dotenv import load_dotenv
from google import genai
from google.genai import types as genai_types

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = (
    "Analyze this image as a professional photographer using a Sony A1. "
    "Suggest the optimal EXIF settings (ISO, Shutter, Aperture) used to take this shot "
    "and provide a 1-sentence critique on composition."
)

# Sentinels handed back instead of raising into the capture pipeline.
API_KEY_MISSING = "API Key missing. AI features disabled."
ANALYSIS_ERROR = "Could not analyze scene."
ANALYSIS_EMPTY = "Analysis failed."
SENTINELS = frozenset({API_KEY_MISSING, ANALYSIS_ERROR, ANALYSIS_EMPTY})


class SceneAnalysisService:
    """
    Sends an encoded capture to a Gemini vision model and returns its
    free-text photographer's notes. Every failure, including a missing
    API key, comes back as one of the SENTINELS strings.
    """

    def __init__(self,
                 api_key: str = None,
                 model: str = None,
                 client_factory: Callable[[str], "genai.Client"] = None):
        self.api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY", "")
        self.model = model or os.getenv("GEMINI_MODEL", "gemini-2.5-flash-image")
        self.client_factory = client_factory or (lambda key: genai.Client(api_key=key))

        if not self.api_key:
            logger.warning("No GEMINI_API_KEY found. Scene analysis disabled.")

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def _decode_payload(payload: str | bytes) -> bytes:
        """Accept raw JPEG bytes or a data URL (header is stripped)."""
        if isinstance(payload, bytes):
            return payload
        _, sep, data = payload.partition(",")
        return base64.b64decode(data if sep else payload)

    def analyze(self, payload: str | bytes) -> str:
        if not self.api_key:
            return API_KEY_MISSING

        try:
            image_part = genai_types.Part.from_bytes(
                data=self._decode_payload(payload),
                mime_type="image/jpeg",
            )
            client = self.client_factory(self.api_key)
            response = client.models.generate_content(
                model=self.model,
                contents=[image_part, ANALYSIS_PROMPT],
            )
        except Exception as e:
            logger.error(f"Gemini analysis error: {e}")
            return ANALYSIS_ERROR

        text = (getattr(response, "text", None) or "").strip()
        return text or ANALYSIS_EMPTY
