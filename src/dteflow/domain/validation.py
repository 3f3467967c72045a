"""Validation pipeline: normalize, then schema, then business rules."""

from collections.abc import Mapping
from typing import Any

from .models import Document, ValidationViolation
from .normalize import normalize
from .rules import validate_rules
from .schema import validate_schema


def validate(
    document: Mapping[str, Any] | Document, document_type: str | None = None
) -> tuple[Document, list[ValidationViolation]]:
    """Normalize a raw document and collect every violation.

    Never raises for bad input: violations are data. ``document_type``
    defaults to the type code carried by the document.
    """
    normalized = normalize(document)
    doc_type = document_type or normalized.document_type
    violations = [*validate_schema(normalized, doc_type), *validate_rules(normalized)]
    return normalized, violations


def blocking(violations: list[ValidationViolation]) -> list[ValidationViolation]:
    return [v for v in violations if v.blocking]
