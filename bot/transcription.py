from typing import Optional

import structlog
from groq import AsyncGroq

from .config import GroqSettings

logger = structlog.get_logger(__name__)


class GroqTranscriber:
    """Speech-to-text for voice notes through Groq's Whisper endpoint."""

    def __init__(self, settings: GroqSettings, client: Optional[AsyncGroq] = None):
        self.settings = settings
        self.client = client

        if self.client is None and settings.api_key:
            self.client = AsyncGroq(api_key=settings.api_key)

    @property
    def is_available(self) -> bool:
        return self.client is not None

    async def transcribe(self, audio: bytes, filename: str = "audio.ogg") -> Optional[str]:
        """Best-effort transcription. Returns None when it cannot be done."""
        if not self.client:
            logger.warning("transcription_unavailable", reason="GROQ_API_KEY not set")
            return None

        try:
            result = await self.client.audio.transcriptions.create(
                file=(filename, audio),
                model=self.settings.transcription_model,
                language=self.settings.language,
                temperature=0.0,
            )
        except Exception as e:
            logger.warning("transcription_failed", error=str(e), error_type=type(e).__name__)
            return None

        text = (result.text or "").strip()
        return text or None
