import asyncio
from typing import Optional

import pytest
from unittest.mock import AsyncMock, Mock

from soprano.agent.context import ScreenContext
from soprano.agent.orchestrator import DialogueOrchestrator, FormBindings
from soprano.agent.state import FieldBinding
from soprano.forms.definitions import UPI_PAYMENT_FIELDS
from soprano.forms.schema import FieldDefinition, FieldType
from soprano.models.audio.base import AudioPlayer, AudioRecorder, PlaybackHandle, RecordingHandle
from soprano.models.audio.console import ConsoleSpeechProvider
from soprano.models.audio.types import AudioBlob
from soprano.services.audio_session import AudioSession
from soprano.services.completion_service import OfflineCompletionService
from soprano.services.transcription_service import TranscriptionService
from soprano.services.tts_service import TTSService


class ScriptedRecordingHandle(RecordingHandle):
    def __init__(self, recorder: "ScriptedRecorder"):
        self._recorder = recorder
        self.stopped = False
        self.discarded = False

    @property
    def is_live(self) -> bool:
        return not self.stopped and not self.discarded

    async def stop(self) -> AudioBlob:
        self.stopped = True
        text = self._recorder.utterances.pop(0) if self._recorder.utterances else ""
        return AudioBlob(data=text.encode("utf-8"), mime_type="text/plain")

    def discard(self) -> None:
        self.discarded = True


class ScriptedRecorder(AudioRecorder):
    """Each recording 'hears' the next scripted utterance."""

    def __init__(self, utterances=(), permission: bool = True):
        self.utterances = list(utterances)
        self.permission = permission
        self.handles: list[ScriptedRecordingHandle] = []
        self.permission_requested: Optional[asyncio.Event] = None
        self.permission_gate: Optional[asyncio.Event] = None

    async def request_permission(self) -> bool:
        if self.permission_requested is not None:
            self.permission_requested.set()
        if self.permission_gate is not None:
            await self.permission_gate.wait()
        return self.permission

    async def start(self) -> RecordingHandle:
        handle = ScriptedRecordingHandle(self)
        self.handles.append(handle)
        return handle

    @property
    def live_handles(self) -> list[ScriptedRecordingHandle]:
        return [h for h in self.handles if h.is_live]


class TrackedPlaybackHandle(PlaybackHandle):
    def __init__(self):
        self.stopped = False

    async def wait_until_finished(self) -> None:
        return None

    def stop(self) -> None:
        self.stopped = True


class TranscriptPlayer(AudioPlayer):
    """Keeps the text of everything spoken."""

    def __init__(self):
        self.spoken: list[str] = []
        self.handles: list[TrackedPlaybackHandle] = []

    async def load(self, audio: AudioBlob) -> PlaybackHandle:
        self.spoken.append(audio.data.decode("utf-8"))
        handle = TrackedPlaybackHandle()
        self.handles.append(handle)
        return handle

    @property
    def last(self) -> str:
        return self.spoken[-1]


@pytest.fixture
def speech_provider():
    return ConsoleSpeechProvider()


@pytest.fixture
def mock_speech_provider():
    provider = AsyncMock(spec=ConsoleSpeechProvider)
    provider.transcribe = AsyncMock(return_value="hello")
    provider.synthesize = AsyncMock(return_value=AudioBlob(data=b"audio"))
    return provider


@pytest.fixture
def recorder():
    return ScriptedRecorder()


@pytest.fixture
def player():
    return TranscriptPlayer()


@pytest.fixture
def audio_session(recorder, player, speech_provider):
    return AudioSession(recorder, player, TTSService(speech_provider))


@pytest.fixture
def upi_fields():
    return UPI_PAYMENT_FIELDS


@pytest.fixture
def simple_fields():
    return (
        FieldDefinition(name="name", label="Name", prompt="What is your name?"),
        FieldDefinition(name="age", label="Age", prompt="How old are you?", type=FieldType.NUMBER),
        FieldDefinition(name="note", label="Note", prompt="Any note?", required=False),
    )


@pytest.fixture
def form_bindings(upi_fields):
    return FormBindings(
        fields={f.name: FieldBinding(set_value=Mock(), validate_on_blur=Mock()) for f in upi_fields},
        submit=AsyncMock(),
        get_snapshot=lambda: {"balance": 50000},
        on_cancel=Mock(),
    )


@pytest.fixture
def make_orchestrator(recorder, player, audio_session, speech_provider):
    def _make(utterances=(), completion_service=None, **kwargs):
        recorder.utterances.extend(utterances)
        kwargs.setdefault("screen_context", ScreenContext(current_screen="UPIPayment"))
        kwargs.setdefault("settle_delay", 0.0)
        return DialogueOrchestrator(
            audio_session=audio_session,
            transcription_service=TranscriptionService(speech_provider),
            completion_service=completion_service or OfflineCompletionService(),
            **kwargs,
        )

    return _make
