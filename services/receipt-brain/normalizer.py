"""Final validation stage: candidates in, immutable ExtractionResult out."""

import logging
from collections.abc import Mapping
from datetime import date

from models import DOCUMENT_TYPE_FIELD, EMPTY, DocumentKind, DocumentType, ExtractionResult, FieldResult
from validators import rules_for

logger = logging.getLogger(__name__)


def normalize_result(
    candidates: Mapping[str, FieldResult],
    document_type: DocumentType,
    kind: DocumentKind,
    today: date | None = None,
) -> ExtractionResult:
    """Validate every schema field of *kind* and fold in the document type.

    A rejected value, a missing field and a zero confidence all become
    (None, 0), so value is None exactly when confidence is 0. Keys outside the
    schema are dropped. Never raises and never retries.
    """
    fields: dict[str, FieldResult] = {}
    rejected = []

    for name, rule in rules_for(kind, today).items():
        candidate = candidates.get(name, EMPTY)
        if candidate.value is None or candidate.confidence <= 0:
            fields[name] = EMPTY
            continue

        value = rule(candidate.value)
        if value is None:
            rejected.append(name)
            fields[name] = EMPTY
            continue

        fields[name] = FieldResult(value=value, confidence=candidate.confidence)

    if rejected:
        logger.info("Validation rejected %d field(s): %s", len(rejected), ", ".join(rejected))

    fields[DOCUMENT_TYPE_FIELD] = FieldResult(
        value=document_type.label if document_type.confidence > 0 else None,
        confidence=document_type.confidence,
    )
    return ExtractionResult(fields)
