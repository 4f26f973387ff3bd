"""Main entry point for Soprano.

Runs the dialogue engine in a terminal:
- guided: fill a form field by field (typed lines stand in for speech)
- chat: free voice turns against the current screen
"""

import argparse
import asyncio
from typing import Any

from soprano.agent.context import ScreenContext
from soprano.agent.llm_factory import create_completion_service
from soprano.agent.orchestrator import DialogueOrchestrator, FormBindings
from soprano.agent.state import FieldBinding
from soprano.core.logger import logger
from soprano.core.settings import settings
from soprano.forms.definitions import FORM_SCHEMAS, get_fields
from soprano.models.audio.console import ConsolePlayer, ConsoleRecorder, ConsoleSpeechProvider
from soprano.models.audio.types import VoiceStatus
from soprano.services.audio_session import AudioSession
from soprano.services.transcription_service import TranscriptionService
from soprano.services.tts_service import TTSService


def open_audio_session(provider: ConsoleSpeechProvider) -> AudioSession:
    return AudioSession(ConsoleRecorder(), ConsolePlayer(), TTSService(provider))


def build_orchestrator(audio_session: AudioSession, provider: ConsoleSpeechProvider, screen: str) -> DialogueOrchestrator:
    return DialogueOrchestrator(
        audio_session=audio_session,
        transcription_service=TranscriptionService(provider),
        completion_service=create_completion_service(),
        screen_context=ScreenContext(current_screen=screen),
        settle_delay=0.0,
    )


async def run_guided(form_id: str) -> None:
    form_values: dict[str, Any] = {}

    async def submit(values: dict[str, Any]) -> None:
        logger.info(f"Submitted {form_id}: {values}")
        print(f"[submitted] {values}")

    def make_setter(name: str):
        def set_value(value: Any) -> None:
            form_values[name] = value

        return set_value

    bindings = FormBindings(
        fields={f.name: FieldBinding(set_value=make_setter(f.name)) for f in get_fields(form_id)},
        submit=submit,
        get_snapshot=lambda: {"balance": settings.dialogue.DEFAULT_BALANCE, **form_values},
    )

    async with ConsoleSpeechProvider() as provider, open_audio_session(provider) as audio_session:
        orchestrator = build_orchestrator(audio_session, provider, form_id)
        orchestrator.screen_context.update_screen_data({"balance": settings.dialogue.DEFAULT_BALANCE})
        try:
            if not await orchestrator.start_guided_mode(form_id, bindings):
                return
            while orchestrator.is_listening:
                orchestrator.screen_context.update_form_state(form_values)
                await orchestrator.finish_listening()
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            orchestrator.stop_guided_mode()


async def run_chat(screen: str) -> None:
    async with ConsoleSpeechProvider() as provider, open_audio_session(provider) as audio_session:
        orchestrator = build_orchestrator(audio_session, provider, screen)
        orchestrator.screen_context.update_screen_data({"balance": settings.dialogue.DEFAULT_BALANCE})
        try:
            while orchestrator.status != VoiceStatus.ERROR:
                await orchestrator.start_listening()
                await orchestrator.finish_listening()
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            orchestrator.stop_guided_mode()


def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(description="Soprano - voice-guided form completion")
    parser.add_argument(
        "mode",
        choices=["guided", "chat"],
        default="guided",
        nargs="?",
        help="Run mode: 'guided' (fill a form, default) or 'chat' (free questions)",
    )
    parser.add_argument(
        "--form",
        choices=sorted(FORM_SCHEMAS),
        default="UPIPayment",
        help="Form to fill in guided mode",
    )
    parser.add_argument(
        "--screen",
        default="Dashboard",
        help="Screen the user is on in chat mode",
    )

    args = parser.parse_args()

    logger.info(f"Starting Soprano in '{args.mode}' mode...")

    if args.mode == "guided":
        asyncio.run(run_guided(args.form))
    else:
        asyncio.run(run_chat(args.screen))


if __name__ == "__main__":
    main()
