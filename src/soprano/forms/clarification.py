"""Answers to questions users ask about a field instead of answering it."""

import math
import re
from typing import Optional

from soprano.forms.schema import FieldDefinition

_QUESTION_PATTERNS = (
    re.compile(r"^(what|why|how|when|where|which|who|can|could|should|would|is|are|do|does)\b"),
    re.compile(r"\?$"),
    re.compile(r"(explain|tell me|help|difference|compare|meaning|mean|better|recommend)"),
)


def find_clarification(question: str, field: FieldDefinition) -> Optional[str]:
    """Find the best matching canned answer for a question about ``field``."""
    if not field.clarifications:
        return None

    normalized = question.lower().strip()

    if normalized in field.clarifications:
        return field.clarifications[normalized]

    for key, answer in field.clarifications.items():
        if key.lower() in normalized:
            return answer

    # Partial match: more than half of the key's words appear in the question
    for key, answer in field.clarifications.items():
        key_words = key.lower().split()
        matches = sum(1 for word in key_words if len(word) > 2 and word in normalized)
        if matches and matches >= math.ceil(len(key_words) / 2):
            return answer

    return None


def get_field_help(field: FieldDefinition) -> str:
    parts = []

    if field.description:
        parts.append(field.description)

    if field.help_text:
        parts.append(field.help_text)

    if field.tips:
        parts.append("Helpful tips:\n" + "\n".join(f"- {tip}" for tip in field.tips))

    if field.examples:
        parts.append("Examples: " + ", ".join(field.examples[:3]))

    return "\n\n".join(parts)


def is_question_like(text: str) -> bool:
    normalized = text.lower().strip()
    return any(pattern.search(normalized) for pattern in _QUESTION_PATTERNS)


def generate_help_response(question: str, field: FieldDefinition) -> str:
    clarification = find_clarification(question, field)
    if clarification:
        return clarification

    normalized = question.lower()

    if "example" in normalized and field.examples:
        return f"Here are some examples for {field.label}: {', '.join(field.examples)}"

    if ("tip" in normalized or "suggest" in normalized) and field.tips:
        return f"Here are some tips for {field.label}: " + ". ".join(field.tips)

    if "what is" in normalized or "explain" in normalized:
        if field.help_text:
            return field.help_text
        if field.description:
            return field.description

    return get_field_help(field)


def get_field_metadata_for_ai(field: FieldDefinition) -> str:
    """Describe a field for the model's system prompt."""
    parts = [f"Field: {field.label}"]

    if field.description:
        parts.append(f"Description: {field.description}")

    if field.help_text:
        parts.append(f"Help: {field.help_text}")

    if field.tips:
        parts.append("Tips:\n" + "\n".join(f"- {tip}" for tip in field.tips))

    if field.examples:
        parts.append(f"Examples: {', '.join(field.examples)}")

    if field.clarifications:
        parts.append("Common Questions & Answers:")
        for question, answer in field.clarifications.items():
            parts.append(f"Q: {question}\nA: {answer}")

    return "\n".join(parts)
