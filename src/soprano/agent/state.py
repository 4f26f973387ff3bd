"""Guided dialogue state.

The whole session lives in one frozen ``SessionDescriptor`` that is
replaced on every change, so readers never see a half-updated session
(for example "active" with a stale index).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from soprano.core.exceptions import SessionError
from soprano.core.logger import get_logger
from soprano.forms.schema import FieldDefinition

logger = get_logger(__name__)

SKIPPED_UTTERANCE = "(skipped)"


class DialogueMode(str, Enum):
    NORMAL = "normal"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    SELECTING_FIELD_TO_EDIT = "selecting_field_to_edit"


@dataclass(frozen=True)
class ConversationEntry:
    field: str
    user_utterance: str
    parsed_value: Any
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Progress:
    current: int
    total: int
    percentage: int


@dataclass(frozen=True)
class FieldBinding:
    """What a host screen exposes for one field."""

    set_value: Callable[[Any], None]
    validate_on_blur: Optional[Callable[[], None]] = None


@dataclass(frozen=True)
class SessionDescriptor:
    fields: tuple[FieldDefinition, ...] = ()
    bindings: Mapping[str, FieldBinding] = field(default_factory=dict)
    is_active: bool = False
    current_index: int = 0
    completed: frozenset[str] = frozenset()
    history: tuple[ConversationEntry, ...] = ()
    mode: DialogueMode = DialogueMode.NORMAL


class GuidedDialogueState:
    def __init__(self):
        self._session = SessionDescriptor()

    @property
    def session(self) -> SessionDescriptor:
        return self._session

    @property
    def is_active(self) -> bool:
        return self._session.is_active

    @property
    def fields(self) -> tuple[FieldDefinition, ...]:
        return self._session.fields

    @property
    def bindings(self) -> Mapping[str, FieldBinding]:
        return self._session.bindings

    @property
    def current_index(self) -> int:
        return self._session.current_index

    @property
    def completed(self) -> frozenset[str]:
        return self._session.completed

    @property
    def history(self) -> tuple[ConversationEntry, ...]:
        return self._session.history

    @property
    def mode(self) -> DialogueMode:
        return self._session.mode

    def start(
        self,
        fields: tuple[FieldDefinition, ...] | list[FieldDefinition],
        bindings: Optional[Mapping[str, FieldBinding]] = None,
    ) -> None:
        if not fields:
            raise SessionError("Cannot start guided mode without fields")

        fields = tuple(fields)
        logger.info("Starting guided mode with %d fields, first field: %s", len(fields), fields[0].name)
        self._session = SessionDescriptor(
            fields=fields,
            bindings=dict(bindings or {}),
            is_active=True,
        )

    def stop(self) -> None:
        """End the session. Only the field schema and bindings survive until ``reset``."""
        if self._session.is_active:
            logger.info("Stopping guided mode")
        self._session = SessionDescriptor(
            fields=self._session.fields,
            bindings=self._session.bindings,
        )

    def reset(self) -> None:
        self._session = SessionDescriptor()

    def current_field(self) -> Optional[FieldDefinition]:
        session = self._session
        if not session.is_active:
            return None
        if 0 <= session.current_index < len(session.fields):
            return session.fields[session.current_index]
        logger.warning(
            "No current field. Index: %d, total fields: %d",
            session.current_index,
            len(session.fields),
        )
        return None

    def is_last_field(self) -> bool:
        return self._session.current_index == len(self._session.fields) - 1

    def advance(self) -> Optional[FieldDefinition]:
        """Move to the next field, or stop and return None after the last one."""
        session = self._session
        if not session.is_active:
            return None

        if session.current_index < len(session.fields) - 1:
            next_index = session.current_index + 1
            self._session = replace(session, current_index=next_index)
            logger.info("Moving to field %d: %s", next_index, session.fields[next_index].name)
            return session.fields[next_index]

        logger.info("All fields completed")
        self.stop()
        return None

    def retreat(self) -> Optional[FieldDefinition]:
        session = self._session
        if not session.is_active or session.current_index <= 0:
            return None

        prev_index = session.current_index - 1
        prev_field = session.fields[prev_index]
        self._session = replace(
            session,
            current_index=prev_index,
            completed=session.completed - {prev_field.name},
        )
        logger.info("Moving back to field %d: %s", prev_index, prev_field.name)
        return prev_field

    def record_answer(self, field_name: str, utterance: str, parsed_value: Any) -> None:
        session = self._session
        if not session.is_active:
            raise SessionError(f"Cannot record {field_name} outside guided mode")

        logger.info("Field updated: %s = %r", field_name, parsed_value)
        entry = ConversationEntry(field=field_name, user_utterance=utterance, parsed_value=parsed_value)
        self._session = replace(
            session,
            history=session.history + (entry,),
            completed=session.completed | {field_name},
        )

    def skip_current_field(self) -> bool:
        """Record a skip for the current field. Required fields refuse and return False."""
        current = self.current_field()
        if current is None or current.required:
            return False
        logger.info("Skipping optional field: %s", current.name)
        self.record_answer(current.name, SKIPPED_UTTERANCE, None)
        return True

    def jump_to(self, field_name: str) -> Optional[FieldDefinition]:
        session = self._session
        if not session.is_active:
            return None
        for index, definition in enumerate(session.fields):
            if definition.name == field_name:
                self._session = replace(session, current_index=index)
                logger.info("Jumping to field %d: %s", index, field_name)
                return definition
        return None

    def set_mode(self, mode: DialogueMode) -> None:
        if mode != DialogueMode.NORMAL and not self._session.is_active:
            raise SessionError(f"Cannot enter {mode.value} outside guided mode")
        if mode != self._session.mode:
            logger.debug("Dialogue mode %s -> %s", self._session.mode.value, mode.value)
            self._session = replace(self._session, mode=mode)

    def collected_values(self) -> dict[str, Any]:
        """Latest recorded value per field; later entries win over earlier ones."""
        values: dict[str, Any] = {}
        for entry in self._session.history:
            values[entry.field] = entry.parsed_value
        return values

    def progress(self) -> Progress:
        total = len(self._session.fields)
        current = self._session.current_index + 1
        percentage = round(100 * current / total) if total > 0 else 0
        return Progress(current=current, total=total, percentage=percentage)
