"""Interpret model responses during guided form filling.

The model is asked to answer with a small JSON object. Anything else is
read with keyword heuristics so a turn never fails on a malformed reply.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from soprano.agent.extractors import parse_numeric_value, parse_upi_id
from soprano.core.logger import get_logger
from soprano.forms.schema import DocumentType, FieldDefinition, FieldType, is_empty_value

logger = get_logger(__name__)

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*\n?")
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


class IntentKind(str, Enum):
    FILL_FIELD = "fill_field"
    SKIP = "skip"
    GO_BACK = "go_back"
    CANCEL = "cancel"
    CLARIFY = "clarify"
    SCAN_DOCUMENT = "scan_document"
    PROVIDE_CLARIFICATION = "provide_clarification"


@dataclass(frozen=True)
class RecognizedIntent:
    kind: IntentKind
    message: str
    value: Any = None
    field: Optional[str] = None
    document_type: Optional[DocumentType] = None

    @property
    def has_value(self) -> bool:
        return not is_empty_value(self.value)


class GuidedResponse(BaseModel):
    """Structured reply expected from the model in guided mode."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)

    action: Literal[
        "fill_field",
        "skip",
        "go_back",
        "cancel",
        "clarify",
        "scan_document",
        "provide_clarification",
    ]
    message: str = Field(min_length=1)
    field: Optional[str] = None
    value: Any = None
    document_type: Optional[DocumentType] = Field(
        default=None,
        validation_alias=AliasChoices("documentType", "document_type"),
    )

    @field_validator("document_type", mode="before")
    @classmethod
    def _blank_document_type(cls, value: Any) -> Any:
        return value or None


class NavigationGuide(BaseModel):
    """Reply asking the UI to spotlight an on-screen element."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["navigation_guide"]
    element_id: str = Field(min_length=1, validation_alias=AliasChoices("elementId", "element_id"))
    instruction: str = Field(min_length=1)


def strip_code_fences(text: str) -> str:
    cleaned = _CODE_FENCE_RE.sub("", text.strip()).replace("```", "")
    return cleaned.strip()


def _extract_json_object(text: str) -> Optional[dict[str, Any]]:
    cleaned = strip_code_fences(text)
    match = _JSON_OBJECT_RE.search(cleaned)
    if not match:
        return None
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def parse_navigation_guide(response_text: str) -> Optional[NavigationGuide]:
    payload = _extract_json_object(response_text)
    if payload is None or payload.get("type") != "navigation_guide":
        return None
    try:
        return NavigationGuide.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed navigation guide: {e}")
        return None


def parse_guided_response(response_text: str) -> RecognizedIntent:
    """Decode a model reply into an intent, falling back to keyword heuristics."""
    payload = _extract_json_object(response_text)
    if payload is not None:
        try:
            parsed = GuidedResponse.model_validate(payload)
            return RecognizedIntent(
                kind=IntentKind(parsed.action),
                message=parsed.message,
                value=parsed.value,
                field=parsed.field,
                document_type=parsed.document_type,
            )
        except ValidationError as e:
            logger.warning("Structured response rejected: %s", e.errors()[0].get("msg"))
    else:
        logger.debug("Response is not JSON, using keyword fallback")

    return parse_fallback_response(response_text)


def parse_fallback_response(response_text: str) -> RecognizedIntent:
    lower_text = response_text.lower()

    if "skip" in lower_text:
        return RecognizedIntent(kind=IntentKind.SKIP, message=response_text)

    if "go back" in lower_text or "previous" in lower_text:
        return RecognizedIntent(kind=IntentKind.GO_BACK, message=response_text)

    if "cancel" in lower_text or "stop" in lower_text:
        return RecognizedIntent(kind=IntentKind.CANCEL, message=response_text)

    return RecognizedIntent(kind=IntentKind.CLARIFY, message=response_text)


def extract_field_value(text: str, field: FieldDefinition) -> Any:
    """Pull a value of ``field.type`` out of free text, or None."""
    if field.type == FieldType.NUMBER:
        return parse_numeric_value(text)
    if field.type == FieldType.EMAIL:
        return parse_upi_id(text)
    cleaned = text.strip()
    return cleaned or None


def normalize_field_value(value: Any, field: FieldDefinition) -> Any:
    """Coerce a value supplied by the model to the field's canonical shape."""
    if is_empty_value(value):
        return None
    if field.type == FieldType.NUMBER and isinstance(value, str):
        return parse_numeric_value(value)
    if field.type == FieldType.EMAIL and isinstance(value, str) and "@" not in value:
        return parse_upi_id(value)
    if isinstance(value, str):
        return value.strip()
    return value


def interpret_response(
    response_text: str,
    field: FieldDefinition,
    utterance: Optional[str] = None,
) -> RecognizedIntent:
    """Turn a model reply for the active ``field`` into an intent.

    A ``fill_field`` reply without a usable value is completed from the
    user's own words first, then from the reply message. The value stays
    None when neither yields one.
    """
    parsed = parse_guided_response(response_text)

    if parsed.kind != IntentKind.FILL_FIELD:
        return parsed

    value = normalize_field_value(parsed.value, field)
    if value is None and utterance:
        value = extract_field_value(utterance, field)
    if value is None and field.type != FieldType.TEXT:
        value = extract_field_value(parsed.message, field)

    return RecognizedIntent(
        kind=IntentKind.FILL_FIELD,
        message=parsed.message,
        value=value,
        field=parsed.field or field.name,
    )
