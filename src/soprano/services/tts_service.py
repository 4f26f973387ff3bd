from soprano.core.logger import get_logger
from soprano.core.exceptions import SynthesisProviderError
from soprano.models.audio.base import BaseSpeechProvider
from soprano.models.audio.types import AudioBlob

logger = get_logger(__name__)


class TTSService:
    def __init__(self, speech_provider: BaseSpeechProvider):
        self._speech_provider = speech_provider

    async def generate_speech(self, text: str) -> AudioBlob:
        if not text or not text.strip():
            raise SynthesisProviderError("Empty text provided")

        try:
            return await self._speech_provider.synthesize(text)
        except SynthesisProviderError:
            raise
        except Exception as e:
            logger.error(f"TTS error: {e}")
            raise SynthesisProviderError(f"Failed to generate speech: {str(e)}") from e
