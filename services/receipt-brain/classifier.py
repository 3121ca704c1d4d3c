"""Document type classification through the vision model."""

import logging

from config import settings
from json_tools import try_parse_json
from models import DOCUMENT_LABELS, DocumentKind, DocumentType, clamp_confidence, default_label
from prompts import classification_prompt
from vision_client import VisionClient, VisionClientError

logger = logging.getLogger(__name__)


async def classify_document(
    image_bytes: bytes,
    mime_type: str,
    kind: DocumentKind,
    client: VisionClient,
    timeout: float | None = None,
) -> DocumentType:
    """Classify the image into the closed label set of *kind*.

    Never raises. Any failure yields the default label, with confidence capped
    at CLASSIFIER_FALLBACK_CONFIDENCE (CLASSIFIER_ERROR_CONFIDENCE when the
    model could not be reached at all).
    """
    try:
        raw_text, inference_ms = await client.infer(
            image_bytes,
            mime_type,
            classification_prompt(kind),
            max_tokens=settings.CLASSIFY_MAX_TOKENS,
            timeout=timeout,
        )
    except VisionClientError as e:
        logger.warning("Classification failed, using default label: %s", e)
        return DocumentType(label=default_label(kind), confidence=settings.CLASSIFIER_ERROR_CONFIDENCE)

    logger.info("Classification inference completed in %dms", inference_ms)
    return parse_classification(raw_text, kind)


def parse_classification(raw_text: str, kind: DocumentKind) -> DocumentType:
    """Map a model answer onto the closed label set."""
    cap = settings.CLASSIFIER_FALLBACK_CONFIDENCE
    fallback = DocumentType(label=default_label(kind), confidence=cap)

    parsed = try_parse_json(raw_text)
    if parsed is None:
        return fallback

    label = parsed.get("label")
    confidence = parsed.get("confidence")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        confidence = cap

    if isinstance(label, str) and label.strip().lower() in DOCUMENT_LABELS[kind]:
        return DocumentType(label=label.strip().lower(), confidence=confidence)

    logger.info("Classifier returned unknown label %r for %s", label, kind.value)
    return DocumentType(label=fallback.label, confidence=min(clamp_confidence(confidence), cap))
