"""Console stand-ins for the microphone, the speaker and the speech providers.

Typed text plays the role of recorded audio so the whole dialogue can be
driven from a terminal.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from soprano.core.logger import get_logger
from soprano.models.audio.base import (
    AudioPlayer,
    AudioRecorder,
    BaseSpeechProvider,
    PlaybackHandle,
    RecordingHandle,
)
from soprano.models.audio.types import AudioBlob

logger = get_logger(__name__)

TEXT_MIME_TYPE = "text/plain"


class ConsoleSpeechProvider(BaseSpeechProvider):
    async def transcribe(self, audio: AudioBlob) -> str:
        return audio.data.decode("utf-8").strip()

    async def synthesize(self, text: str) -> AudioBlob:
        return AudioBlob(data=text.encode("utf-8"), mime_type=TEXT_MIME_TYPE)


class _ConsoleRecordingHandle(RecordingHandle):
    def __init__(self, read_line: Callable[[str], str], prompt: str):
        self._read_line = read_line
        self._prompt = prompt
        self._discarded = False

    async def stop(self) -> AudioBlob:
        text = await asyncio.to_thread(self._read_line, self._prompt)
        return AudioBlob(data=text.encode("utf-8"), mime_type=TEXT_MIME_TYPE)

    def discard(self) -> None:
        self._discarded = True


class ConsoleRecorder(AudioRecorder):
    def __init__(self, read_line: Callable[[str], str] = input, prompt: str = "you> "):
        self._read_line = read_line
        self._prompt = prompt

    async def request_permission(self) -> bool:
        return True

    async def start(self) -> RecordingHandle:
        return _ConsoleRecordingHandle(self._read_line, self._prompt)


class _ConsolePlaybackHandle(PlaybackHandle):
    async def wait_until_finished(self) -> None:
        return None

    def stop(self) -> None:
        pass


class ConsolePlayer(AudioPlayer):
    def __init__(self, write_line: Callable[[str], None] = print, prefix: str = "soprano> "):
        self._write_line = write_line
        self._prefix = prefix

    async def load(self, audio: AudioBlob) -> PlaybackHandle:
        self._write_line(f"{self._prefix}{audio.data.decode('utf-8')}")
        return _ConsolePlaybackHandle()
