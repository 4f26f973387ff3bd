"""Guided form schemas, validators and field help."""

from soprano.forms.definitions import get_fields, get_form, has_guided_support
from soprano.forms.schema import (
    DocumentType,
    FieldDefinition,
    FieldType,
    FormSchema,
    ValidationResult,
)

__all__ = [
    "DocumentType",
    "FieldDefinition",
    "FieldType",
    "FormSchema",
    "ValidationResult",
    "get_fields",
    "get_form",
    "has_guided_support",
]
