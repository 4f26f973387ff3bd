"""Drive a guided form session turn by turn.

Each turn is: stop recording, transcribe, ask the model with a fresh
context snapshot, act on the reply, speak, and listen again. Turns are
serialised by a lock. ``stop_guided_mode`` may be called at any time; a
turn that was in flight notices the bumped epoch after its next await
and returns without touching the new state.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol

from soprano.agent.context import ContextSnapshot, ScreenContext, build_snapshot
from soprano.agent.extractors import is_cancel_intent
from soprano.agent.interpreter import (
    IntentKind,
    NavigationGuide,
    RecognizedIntent,
    interpret_response,
    parse_navigation_guide,
)
from soprano.agent.prompts import generate_error_prompt, generate_field_prompt, generate_final_message
from soprano.agent.state import (
    ConversationEntry,
    DialogueMode,
    FieldBinding,
    GuidedDialogueState,
    Progress,
)
from soprano.core.exceptions import (
    CompletionError,
    DocumentScanError,
    PlaybackError,
    SessionError,
    SynthesisProviderError,
    TranscriptionError,
    UserCancelledError,
)
from soprano.core.logger import get_logger
from soprano.core.settings import settings
from soprano.forms.definitions import get_form
from soprano.forms.schema import FieldDefinition
from soprano.models.audio.types import VoiceStatus
from soprano.services.audio_session import AudioSession
from soprano.services.document_scan_service import DocumentScanService
from soprano.services.transcription_service import TranscriptionService
from soprano.services.visual_guide import VisualGuideCoordinator, available_elements

logger = get_logger(__name__)

AFFIRMATIVE_WORDS = ("yes", "yeah", "yep", "sure", "confirm", "proceed", "correct", "right", "ok", "okay", "go ahead")
NEGATIVE_WORDS = ("no", "nope", "not", "cancel", "wrong", "incorrect", "edit", "change", "modify")

TRANSCRIPTION_APOLOGY = "Sorry, I didn't catch that."
COMPLETION_APOLOGY = "Sorry, I'm having trouble right now."
FREE_TURN_APOLOGY = "Sorry, something went wrong. Please try again."
CONFIRM_QUESTION = "Please say yes to confirm or no to make changes."
SELECT_FIELD_QUESTION = "Which field would you like to change? You can say {labels}."
SUBMITTED_MESSAGE = "Done! I've submitted the form."
CANCELLED_MESSAGE = "Okay, I've stopped filling the form."


class CompletionBackend(Protocol):
    async def complete(self, user_text: str, snapshot: ContextSnapshot) -> str: ...


@dataclass(frozen=True)
class FormBindings:
    """What the host screen hands over when a guided session starts."""

    fields: Mapping[str, FieldBinding]
    submit: Callable[[dict[str, Any]], Awaitable[None]]
    get_snapshot: Callable[[], Mapping[str, Any]] = dict
    on_cancel: Optional[Callable[[], None]] = None


@dataclass(frozen=True)
class _SessionPlan:
    bindings: FormBindings
    greeting: Optional[str]
    requires_confirmation: bool
    summarize: Optional[Callable[[Mapping[str, Any]], str]] = field(default=None, compare=False)


def _contains_word(text: str, words: tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(word)}\b", text) for word in words)


class DialogueOrchestrator:
    def __init__(
        self,
        audio_session: AudioSession,
        transcription_service: TranscriptionService,
        completion_service: CompletionBackend,
        screen_context: Optional[ScreenContext] = None,
        document_scan_service: Optional[DocumentScanService] = None,
        visual_guide: Optional[VisualGuideCoordinator] = None,
        settle_delay: Optional[float] = None,
        history_window: Optional[int] = None,
        on_status_change: Optional[Callable[[VoiceStatus], None]] = None,
        on_speech: Optional[Callable[[str], None]] = None,
    ):
        self._audio = audio_session
        self._transcription = transcription_service
        self._completion = completion_service
        self._screen_context = screen_context or ScreenContext()
        self._document_scanner = document_scan_service
        self._visual_guide = visual_guide
        self._settle_delay = settings.dialogue.SETTLE_DELAY_SECONDS if settle_delay is None else settle_delay
        self._history_window = settings.dialogue.HISTORY_WINDOW if history_window is None else history_window
        self._on_status_change = on_status_change
        self._on_speech = on_speech

        self._state = GuidedDialogueState()
        self._plan: Optional[_SessionPlan] = None
        self._status = VoiceStatus.IDLE
        self._turn_lock = asyncio.Lock()
        self._epoch = 0
        self._resume_confirmation = False

    @property
    def status(self) -> VoiceStatus:
        return self._status

    @property
    def is_guided_active(self) -> bool:
        return self._state.is_active

    @property
    def is_listening(self) -> bool:
        return self._audio.is_capturing

    @property
    def mode(self) -> DialogueMode:
        return self._state.mode

    @property
    def history(self) -> tuple[ConversationEntry, ...]:
        return self._state.history

    @property
    def screen_context(self) -> ScreenContext:
        return self._screen_context

    def current_field(self) -> Optional[FieldDefinition]:
        return self._state.current_field()

    def progress(self) -> Progress:
        return self._state.progress()

    async def start_guided_mode(self, form_id: str, bindings: FormBindings) -> bool:
        """Start guided mode for a known form. Returns False when the form has none."""
        form = get_form(form_id)
        if form is None or not form.fields:
            logger.warning(f"Guided mode not available for form: {form_id}")
            return False

        await self.start_session(
            form.fields,
            bindings,
            greeting=form.greeting,
            summarize=form.summarize,
            requires_confirmation=form.requires_confirmation,
        )
        return True

    async def start_session(
        self,
        fields: tuple[FieldDefinition, ...] | list[FieldDefinition],
        bindings: FormBindings,
        greeting: Optional[str] = None,
        summarize: Optional[Callable[[Mapping[str, Any]], str]] = None,
        requires_confirmation: bool = False,
    ) -> None:
        if not fields:
            raise SessionError("Cannot start guided mode without fields")

        self.stop_guided_mode()
        async with self._turn_lock:
            self._state.start(fields, bindings.fields)
            self._plan = _SessionPlan(
                bindings=bindings,
                greeting=greeting,
                requires_confirmation=requires_confirmation,
                summarize=summarize,
            )
            await self._guarded(self._greet())

    def stop_guided_mode(self) -> None:
        """Stop everything at once: playback, recording, status and dialogue state."""
        self._epoch += 1
        self._audio.stop_playback()
        self._audio.discard_capture()
        self._set_status(VoiceStatus.IDLE)
        if self._state.is_active:
            logger.info("Guided mode stopped by host")
        self._state.reset()
        self._plan = None
        self._resume_confirmation = False

    async def start_listening(self) -> None:
        """Open the microphone for a free (non-guided) turn."""
        async with self._turn_lock:
            await self._guarded(self._listen())

    async def finish_listening(self) -> None:
        """Close the microphone and run the turn for what was said."""
        async with self._turn_lock:
            await self._guarded(self._finish_listening())

    async def handle_transcript(self, text: str) -> None:
        """Run a turn for text that was transcribed elsewhere."""
        async with self._turn_lock:
            self._audio.discard_capture()
            await self._guarded(self._process_transcript(text))

    async def _guarded(self, turn: Awaitable[None]) -> None:
        try:
            await turn
        except Exception as e:
            self._fail(e)

    def _fail(self, error: Exception) -> None:
        logger.exception(f"Unexpected error during voice turn: {error}")
        self._epoch += 1
        self._audio.stop_playback()
        self._audio.discard_capture()
        self._state.stop()
        self._plan = None
        self._resume_confirmation = False
        self._set_status(VoiceStatus.ERROR)

    def _set_status(self, status: VoiceStatus) -> None:
        if status == self._status:
            return
        logger.debug(f"Voice status {self._status.value} -> {status.value}")
        self._status = status
        if self._on_status_change:
            self._on_status_change(status)

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    async def _greet(self) -> None:
        first_field = self._state.current_field()
        if self._plan.greeting:
            opening = f"{self._plan.greeting} {first_field.prompt}"
        else:
            opening = generate_field_prompt(first_field, is_first_field=True)
        await self._speak_and_listen(opening)

    async def _speak(self, text: str) -> None:
        logger.info(f"Speaking: {text}")
        self._set_status(VoiceStatus.SPEAKING)
        if self._on_speech:
            self._on_speech(text)
        try:
            await self._audio.speak(text)
        except (SynthesisProviderError, PlaybackError) as e:
            logger.warning(f"Could not play spoken reply: {e}")

    async def _speak_and_listen(self, text: str) -> None:
        epoch = self._epoch
        await self._speak(text)
        if not self._is_current(epoch) or not self._state.is_active:
            return
        if self._settle_delay > 0:
            await asyncio.sleep(self._settle_delay)
        if not self._is_current(epoch):
            return
        await self._listen()

    async def _speak_and_finish(self, text: str) -> None:
        epoch = self._epoch
        await self._speak(text)
        if self._is_current(epoch):
            self._set_status(VoiceStatus.IDLE)

    async def _listen(self) -> None:
        epoch = self._epoch
        await self._audio.start_capture()
        if not self._is_current(epoch):
            logger.info("Session stopped while opening the microphone, discarding recording")
            self._audio.discard_capture()
            return
        self._set_status(VoiceStatus.LISTENING)

    async def _finish_listening(self) -> None:
        if not self._audio.is_capturing:
            logger.warning("Finish listening requested without an active recording")
            return

        epoch = self._epoch
        self._set_status(VoiceStatus.PROCESSING)
        audio = await self._audio.stop_capture_and_get_audio()

        try:
            transcript = await self._transcription.transcribe(audio)
        except TranscriptionError as e:
            logger.warning(f"Transcription failed, asking again: {e}")
            if not self._is_current(epoch):
                return
            if self._state.is_active:
                await self._speak_and_listen(f"{TRANSCRIPTION_APOLOGY} {self._current_question()}")
            else:
                await self._speak_and_finish(FREE_TURN_APOLOGY)
            return

        if self._is_current(epoch):
            await self._process_transcript(transcript)

    def _current_question(self) -> str:
        if self._state.mode == DialogueMode.AWAITING_CONFIRMATION:
            return CONFIRM_QUESTION
        if self._state.mode == DialogueMode.SELECTING_FIELD_TO_EDIT:
            return self._select_field_question()
        current = self._state.current_field()
        return current.prompt if current else ""

    def _select_field_question(self) -> str:
        labels = [f.label for f in self._state.fields]
        spoken = ", ".join(labels[:-1]) + f" or {labels[-1]}" if len(labels) > 1 else labels[0]
        return SELECT_FIELD_QUESTION.format(labels=spoken)

    def _build_snapshot(self) -> ContextSnapshot:
        return build_snapshot(
            self._screen_context,
            self._state,
            history_window=self._history_window,
            available_elements=available_elements(self._screen_context.current_screen),
        )

    async def _process_transcript(self, text: str) -> None:
        epoch = self._epoch
        self._set_status(VoiceStatus.PROCESSING)
        logger.info(f"User said: {text}")

        snapshot = self._build_snapshot()
        try:
            response: Optional[str] = await self._completion.complete(text, snapshot)
        except CompletionError as e:
            if not self._is_current(epoch):
                return
            if not self._state.is_active:
                logger.warning(f"Completion failed: {e}")
                await self._speak_and_finish(FREE_TURN_APOLOGY)
                return
            if self._state.mode == DialogueMode.NORMAL:
                logger.warning(f"Completion failed, repeating the prompt: {e}")
                await self._speak_and_listen(f"{COMPLETION_APOLOGY} {self._current_question()}")
                return
            # Confirmation and field selection only need the transcript
            logger.warning(f"Completion failed during {self._state.mode.value}, continuing: {e}")
            response = None

        if not self._is_current(epoch):
            return

        guide = parse_navigation_guide(response) if response else None
        if guide is not None:
            await self._show_guide(guide, snapshot)
            return

        if not self._state.is_active:
            await self._speak_and_finish(response)
            return

        if self._state.mode == DialogueMode.AWAITING_CONFIRMATION:
            await self._handle_confirmation(text)
        elif self._state.mode == DialogueMode.SELECTING_FIELD_TO_EDIT:
            await self._handle_field_selection(text)
        else:
            current = self._state.current_field()
            await self._dispatch(interpret_response(response, current, utterance=text), current, text)

    async def _show_guide(self, guide: NavigationGuide, snapshot: ContextSnapshot) -> None:
        if self._visual_guide is not None:
            self._visual_guide.show(guide.element_id, guide.instruction, screen_name=snapshot.screen)
        else:
            logger.debug(f"No visual guide attached, speaking instruction only for {guide.element_id}")

        if self._state.is_active:
            await self._speak_and_listen(guide.instruction)
        else:
            await self._speak_and_finish(guide.instruction)

    def _match_field(self, text: str) -> Optional[FieldDefinition]:
        lower_text = text.lower()
        for definition in self._state.fields:
            if _contains_word(lower_text, definition.keywords):
                return definition
        return None

    async def _handle_confirmation(self, text: str) -> None:
        lower_text = text.lower()

        if _contains_word(lower_text, NEGATIVE_WORDS):
            named = self._match_field(text)
            if named is not None:
                await self._edit_field(named)
                return
            logger.info("User declined the summary, asking which field to edit")
            self._state.set_mode(DialogueMode.SELECTING_FIELD_TO_EDIT)
            await self._speak_and_listen(self._select_field_question())
            return

        if _contains_word(lower_text, AFFIRMATIVE_WORDS):
            await self._submit()
            return

        await self._speak_and_listen(CONFIRM_QUESTION)

    async def _handle_field_selection(self, text: str) -> None:
        if is_cancel_intent(text):
            await self._cancel(CANCELLED_MESSAGE)
            return

        named = self._match_field(text)
        if named is None:
            await self._speak_and_listen(f"Sorry, I didn't get which field. {self._select_field_question()}")
            return

        await self._edit_field(named)

    async def _edit_field(self, definition: FieldDefinition) -> None:
        self._state.jump_to(definition.name)
        self._state.set_mode(DialogueMode.NORMAL)
        self._resume_confirmation = True
        await self._speak_and_listen(f"Sure, let's change the {definition.label}. {definition.prompt}")

    async def _dispatch(self, intent: RecognizedIntent, current: FieldDefinition, utterance: str) -> None:
        logger.info(f"Intent {intent.kind.value} for field {current.name}")

        if intent.kind == IntentKind.FILL_FIELD:
            await self._apply_value(current, intent.value, utterance, intent.message)

        elif intent.kind == IntentKind.SKIP:
            if not self._state.skip_current_field():
                await self._speak_and_listen(f"{current.label} is required, so we can't skip it. {current.prompt}")
                return
            await self._move_on(intent.message)

        elif intent.kind == IntentKind.GO_BACK:
            previous = self._state.retreat()
            if previous is None:
                await self._speak_and_listen(f"We're already at the first field. {current.prompt}")
                return
            await self._speak_and_listen(f"{intent.message} {previous.prompt}".strip())

        elif intent.kind == IntentKind.CANCEL:
            await self._cancel(intent.message)

        elif intent.kind == IntentKind.SCAN_DOCUMENT:
            await self._scan_document(intent, current)

        else:
            # Clarify and provide_clarification both answer without advancing
            await self._speak_and_listen(intent.message)

    async def _apply_value(self, current: FieldDefinition, value: Any, utterance: str, message: str) -> None:
        value = current.normalize(value)
        result = current.validate(value, self._plan.bindings.get_snapshot())
        if not result.valid:
            logger.info(f"Validation failed for {current.name}: {result.error}")
            await self._speak_and_listen(generate_error_prompt(current, result.error))
            return

        binding = self._state.bindings.get(current.name)
        if binding is not None:
            binding.set_value(value)
            if binding.validate_on_blur is not None:
                binding.validate_on_blur()

        self._state.record_answer(current.name, utterance, value)
        confirmation = f"{message} {result.warning}" if result.warning else message
        await self._move_on(confirmation)

    async def _move_on(self, confirmation: str) -> None:
        """Go to the next field, or to confirmation or submission after the last one."""
        plan = self._plan
        confirmation = confirmation.strip()

        if self._resume_confirmation or (self._state.is_last_field() and plan.requires_confirmation):
            self._resume_confirmation = False
            self._state.set_mode(DialogueMode.AWAITING_CONFIRMATION)
            await self._speak_and_listen(f"{confirmation} {self._summarize()}".strip())
            return

        values = self._state.collected_values()
        next_field = self._state.advance()
        if next_field is not None:
            await self._speak_and_listen(f"{confirmation} {next_field.prompt}".strip())
            return

        epoch = self._epoch
        await self._speak(f"{confirmation} {self._summarize(values)}".strip())
        if not self._is_current(epoch):
            return
        await plan.bindings.submit(values)
        logger.info("Form submitted")
        self._plan = None
        self._set_status(VoiceStatus.IDLE)

    def _summarize(self, values: Optional[Mapping[str, Any]] = None) -> str:
        values = self._state.collected_values() if values is None else values
        if self._plan.summarize is not None:
            return self._plan.summarize(values)
        return generate_final_message(len(self._state.fields))

    async def _submit(self) -> None:
        plan = self._plan
        values = self._state.collected_values()
        logger.info(f"Submitting {len(values)} collected values")
        await plan.bindings.submit(values)
        self._state.stop()
        self._plan = None
        await self._speak_and_finish(SUBMITTED_MESSAGE)

    async def _cancel(self, message: str) -> None:
        plan = self._plan
        self._state.stop()
        self._plan = None
        self._resume_confirmation = False
        if plan is not None and plan.bindings.on_cancel is not None:
            plan.bindings.on_cancel()
        await self._speak_and_finish(message or CANCELLED_MESSAGE)

    async def _scan_document(self, intent: RecognizedIntent, current: FieldDefinition) -> None:
        document_type = intent.document_type or current.document_type
        if document_type is None or self._document_scanner is None:
            await self._speak_and_listen(f"I can't scan a document for {current.label}. {current.prompt}")
            return

        epoch = self._epoch
        await self._speak(intent.message)
        if not self._is_current(epoch):
            return

        try:
            value = await self._document_scanner.scan_for_field(document_type)
        except UserCancelledError:
            logger.info("Document scan cancelled by user")
            if self._is_current(epoch):
                await self._speak_and_listen(current.prompt)
            return
        except DocumentScanError as e:
            logger.warning(f"Document scan failed, falling back to voice: {e}")
            if self._is_current(epoch):
                await self._speak_and_listen(
                    f"Sorry, I couldn't read that document. Let's do it by voice instead. {current.prompt}"
                )
            return

        if not self._is_current(epoch):
            return
        await self._apply_value(
            current,
            value,
            f"(scanned {document_type.value})",
            f"I've read your {current.label} from the document.",
        )
