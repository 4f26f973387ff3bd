from soprano.core.logger import get_logger
from soprano.core.exceptions import TranscriptionError
from soprano.models.audio.base import BaseSpeechProvider
from soprano.models.audio.types import AudioBlob

logger = get_logger(__name__)


class TranscriptionService:
    def __init__(self, speech_provider: BaseSpeechProvider):
        self._speech_provider = speech_provider

    async def transcribe(self, audio: AudioBlob) -> str:
        """Return the transcript of ``audio``; an empty result counts as a failure."""
        if audio is None or audio.is_empty:
            raise TranscriptionError("No audio provided")

        try:
            text = await self._speech_provider.transcribe(audio)
        except TranscriptionError:
            raise
        except Exception as e:
            logger.error(f"Transcription error: {e}")
            raise TranscriptionError(f"Failed to transcribe audio: {str(e)}") from e

        transcript = (text or "").strip()
        if not transcript:
            raise TranscriptionError("No speech recognised")
        return transcript
