"""Guided dialogue: state, response interpretation and prompts."""

from soprano.agent.context import ContextSnapshot, ScreenContext, build_snapshot
from soprano.agent.interpreter import IntentKind, RecognizedIntent, interpret_response
from soprano.agent.state import DialogueMode, FieldBinding, GuidedDialogueState

__all__ = [
    "ContextSnapshot",
    "ScreenContext",
    "build_snapshot",
    "IntentKind",
    "RecognizedIntent",
    "interpret_response",
    "DialogueMode",
    "FieldBinding",
    "GuidedDialogueState",
]
