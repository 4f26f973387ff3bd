"""Abstract base classes for speech providers and audio devices."""

from abc import ABC, abstractmethod

from soprano.models.audio.types import AudioBlob


class BaseSpeechProvider(ABC):
    """Abstract interface for speech providers.

    Lets the engine swap speech-to-text and text-to-speech backends
    (Deepgram, ElevenLabs, local models, the console passthrough)
    without touching the dialogue logic.
    """

    def __init__(self):
        self._connected = False

    async def connect(self) -> None:
        """Open any connection the provider needs."""
        self._connected = True

    async def disconnect(self) -> None:
        """Close connection and cleanup resources."""
        self._connected = False

    @abstractmethod
    async def transcribe(self, audio: AudioBlob) -> str:
        """Convert a recorded utterance to text.

        Args:
            audio: Complete recording of one utterance

        Returns:
            The transcript, possibly empty when nothing was recognised
        """
        pass

    @abstractmethod
    async def synthesize(self, text: str) -> AudioBlob:
        """Convert text to speech audio.

        Args:
            text: Text to speak

        Returns:
            Audio ready for playback
        """
        pass

    @property
    def is_connected(self) -> bool:
        """Check if provider is connected and ready."""
        return self._connected

    async def __aenter__(self):
        """Context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        await self.disconnect()


class RecordingHandle(ABC):
    """One open microphone recording."""

    @abstractmethod
    async def stop(self) -> AudioBlob:
        """Stop recording and return what was captured."""
        pass

    @abstractmethod
    def discard(self) -> None:
        """Stop recording and drop the audio. Must not raise."""
        pass


class AudioRecorder(ABC):
    @abstractmethod
    async def request_permission(self) -> bool:
        """Ask the platform for microphone access."""
        pass

    @abstractmethod
    async def start(self) -> RecordingHandle:
        """Start a new recording. Raises DeviceBusyError when the mic is taken."""
        pass


class PlaybackHandle(ABC):
    """One loaded sound."""

    @abstractmethod
    async def wait_until_finished(self) -> None:
        """Resolve once playback ends, either naturally or via stop()."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop playback immediately and unload. Must not raise."""
        pass


class AudioPlayer(ABC):
    @abstractmethod
    async def load(self, audio: AudioBlob) -> PlaybackHandle:
        """Load audio and start playing it."""
        pass
