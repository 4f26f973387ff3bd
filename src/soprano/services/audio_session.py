from typing import Optional

from soprano.core.exceptions import (
    AudioDeviceError,
    DeviceBusyError,
    NoActiveCaptureError,
    PermissionDeniedError,
    PlaybackError,
)
from soprano.core.logger import get_logger
from soprano.models.audio.base import AudioPlayer, AudioRecorder, PlaybackHandle, RecordingHandle
from soprano.models.audio.types import AudioBlob
from soprano.services.tts_service import TTSService

logger = get_logger(__name__)


class AudioSession:
    """Owns the one microphone recording and the one playing sound.

    The orchestrator holds a single instance; ``async with`` guarantees
    both handles are released on every exit path.
    """

    def __init__(self, recorder: AudioRecorder, player: AudioPlayer, tts_service: TTSService):
        self._recorder = recorder
        self._player = player
        self._tts_service = tts_service
        self._recording: Optional[RecordingHandle] = None
        self._playback: Optional[PlaybackHandle] = None

    @property
    def is_capturing(self) -> bool:
        return self._recording is not None

    @property
    def is_playing(self) -> bool:
        return self._playback is not None

    async def start_capture(self) -> RecordingHandle:
        if self._recording is not None:
            logger.warning("Recording already in progress, discarding it before starting a new one")
            self.discard_capture()

        if not await self._recorder.request_permission():
            raise PermissionDeniedError("Microphone permission not granted")

        try:
            handle = await self._recorder.start()
        except AudioDeviceError:
            raise
        except Exception as e:
            logger.error(f"Failed to start recording: {e}")
            raise DeviceBusyError(f"Failed to start recording: {str(e)}") from e

        self._recording = handle
        logger.debug("Recording started")
        return handle

    async def stop_capture_and_get_audio(self, handle: Optional[RecordingHandle] = None) -> AudioBlob:
        handle = handle or self._recording
        if handle is None or handle is not self._recording:
            raise NoActiveCaptureError("No active recording")

        self._recording = None
        try:
            audio = await handle.stop()
        except Exception as e:
            logger.error(f"Failed to stop recording: {e}")
            raise NoActiveCaptureError(f"Recording could not be stopped: {str(e)}") from e

        logger.debug(f"Recording stopped, {len(audio.data)} bytes captured")
        return audio

    def discard_capture(self) -> None:
        handle, self._recording = self._recording, None
        if handle is not None:
            handle.discard()
            logger.debug("Recording discarded")

    async def synthesize(self, text: str) -> AudioBlob:
        return await self._tts_service.generate_speech(text)

    async def play(self, audio: AudioBlob) -> None:
        """Play ``audio`` and return once it has finished."""
        self.stop_playback()

        try:
            handle = await self._player.load(audio)
        except Exception as e:
            logger.error(f"Playback error: {e}")
            raise PlaybackError(f"Failed to play audio: {str(e)}") from e

        self._playback = handle
        try:
            await handle.wait_until_finished()
        except Exception as e:
            logger.error(f"Playback error: {e}")
            raise PlaybackError(f"Failed to play audio: {str(e)}") from e
        finally:
            if self._playback is handle:
                self._playback = None
                handle.stop()

    def stop_playback(self) -> None:
        handle, self._playback = self._playback, None
        if handle is not None:
            handle.stop()
            logger.debug("Playback stopped")

    async def speak(self, text: str) -> None:
        audio = await self.synthesize(text)
        await self.play(audio)

    def release(self) -> None:
        self.stop_playback()
        self.discard_capture()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.release()
