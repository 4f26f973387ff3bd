"""Declarative description of the forms Soprano can fill by voice."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    EMAIL = "email"


class DocumentType(str, Enum):
    ADDRESS = "address"
    PAN = "pan"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None
    warning: Optional[str] = None


Validator = Callable[[Any, Mapping[str, Any]], ValidationResult]
Normalizer = Callable[[Any], Any]

_CAMEL_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def is_empty_value(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class FieldDefinition:
    """One field of a guided form.

    Attributes:
        name: Unique key, also the host binding name
        label: Human readable name, spoken in errors and summaries
        prompt: Question spoken when the field becomes current
        type: Drives value extraction from free speech
        required: Required fields refuse skip
        validator: Field specific rule, receives the value and the host snapshot
        normalizer: Canonical form applied before validation and binding
        synonyms: Extra words that select this field when editing
        document_type: Document that can be scanned to fill this field
    """

    name: str
    label: str
    prompt: str
    type: FieldType = FieldType.TEXT
    required: bool = True
    validator: Optional[Validator] = field(default=None, compare=False, repr=False)
    normalizer: Optional[Normalizer] = field(default=None, compare=False, repr=False)
    synonyms: tuple[str, ...] = ()
    description: str = ""
    help_text: str = ""
    tips: tuple[str, ...] = ()
    examples: tuple[str, ...] = ()
    clarifications: Mapping[str, str] = field(default_factory=dict, compare=False, repr=False)
    document_type: Optional[DocumentType] = None

    def normalize(self, value: Any) -> Any:
        if self.normalizer is None or is_empty_value(value):
            return value
        return self.normalizer(value)

    def validate(self, value: Any, form_snapshot: Optional[Mapping[str, Any]] = None) -> ValidationResult:
        if is_empty_value(value):
            if self.required:
                return ValidationResult(valid=False, error=f"{self.label} is required")
            return ValidationResult(valid=True)

        if self.validator is not None:
            return self.validator(value, form_snapshot or {})

        return ValidationResult(valid=True)

    @property
    def keywords(self) -> tuple[str, ...]:
        """Lowercase phrases that refer to this field in speech."""
        spoken_name = _CAMEL_BOUNDARY_RE.sub(" ", self.name).lower()
        phrases = [self.label.lower(), spoken_name, *(s.lower() for s in self.synonyms)]
        return tuple(dict.fromkeys(p for p in phrases if p))


Summarizer = Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True)
class FormSchema:
    """A form with guided mode support.

    Forms that need a spoken yes/no before submitting set
    ``requires_confirmation``; the others submit as soon as the last
    field is filled.
    """

    form_id: str
    fields: tuple[FieldDefinition, ...]
    greeting: str
    summarizer: Optional[Summarizer] = field(default=None, compare=False, repr=False)
    requires_confirmation: bool = False

    def summarize(self, values: Mapping[str, Any]) -> str:
        if self.summarizer is not None:
            return self.summarizer(values)
        return f"All done! I've filled in all {len(self.fields)} fields."

    def get_field(self, name: str) -> Optional[FieldDefinition]:
        return next((f for f in self.fields if f.name == name), None)
