"""Screen context and the per-turn snapshot handed to the model."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from soprano.agent.state import ConversationEntry, GuidedDialogueState, Progress
from soprano.forms.schema import FieldDefinition


class ScreenContext:
    """What the host UI is currently showing.

    Screens write here as they mount and as their form state changes;
    the dialogue engine only reads it when building a snapshot.
    """

    def __init__(self, current_screen: str = "Dashboard"):
        self.current_screen = current_screen
        self._screen_data: dict[str, Any] = {}
        self._form_state: dict[str, Any] = {}

    @property
    def screen_data(self) -> Mapping[str, Any]:
        return MappingProxyType(self._screen_data)

    @property
    def form_state(self) -> Mapping[str, Any]:
        return MappingProxyType(self._form_state)

    def set_current_screen(self, screen: str) -> None:
        self.current_screen = screen

    def update_screen_data(self, data: Mapping[str, Any]) -> None:
        self._screen_data.update(data)

    def update_form_state(self, data: Mapping[str, Any]) -> None:
        self._form_state.update(data)


@dataclass(frozen=True)
class GuidedContext:
    current_field: Optional[FieldDefinition]
    completed_fields: tuple[str, ...]
    recent_history: tuple[ConversationEntry, ...]
    progress: Progress


@dataclass(frozen=True)
class ContextSnapshot:
    screen: str
    screen_data: Mapping[str, Any]
    form_state: Mapping[str, Any]
    guided: Optional[GuidedContext] = None
    available_elements: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def is_guided(self) -> bool:
        return self.guided is not None


def build_snapshot(
    screen_context: ScreenContext,
    state: GuidedDialogueState,
    history_window: int = 5,
    available_elements: Optional[Mapping[str, str]] = None,
) -> ContextSnapshot:
    guided = None
    if state.is_active:
        history = state.history[-history_window:] if history_window > 0 else ()
        guided = GuidedContext(
            current_field=state.current_field(),
            completed_fields=tuple(f.name for f in state.fields if f.name in state.completed),
            recent_history=tuple(history),
            progress=state.progress(),
        )

    return ContextSnapshot(
        screen=screen_context.current_screen,
        screen_data=MappingProxyType(dict(screen_context.screen_data)),
        form_state=MappingProxyType(dict(screen_context.form_state)),
        guided=guided,
        available_elements=MappingProxyType(dict(available_elements or {})),
    )
