"""Common types and data structures for audio capture and playback."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class VoiceStatus(str, Enum):
    """Voice indicator states shown by the host UI."""

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    SPEAKING = "speaking"
    ERROR = "error"


@dataclass(frozen=True)
class AudioBlob:
    """Opaque audio payload passed between recorder, providers and player."""

    data: bytes
    mime_type: str = "audio/m4a"
    duration_s: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not self.data
