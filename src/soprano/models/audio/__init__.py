from soprano.models.audio.base import (
    AudioPlayer,
    AudioRecorder,
    BaseSpeechProvider,
    PlaybackHandle,
    RecordingHandle,
)
from soprano.models.audio.types import AudioBlob, VoiceStatus

__all__ = [
    "AudioBlob",
    "AudioPlayer",
    "AudioRecorder",
    "BaseSpeechProvider",
    "PlaybackHandle",
    "RecordingHandle",
    "VoiceStatus",
]
