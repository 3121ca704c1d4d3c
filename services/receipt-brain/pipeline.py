"""Extraction pipeline: classify -> extract (structured or fallback) -> normalize.

Start -> Classifying -> Extracting{Structured|Fallback} -> Normalizing -> Done.
Each stage absorbs its own failures, so the worst case is a well-formed
result with every field empty. No stage is retried here; re-invoking the
pipeline is the caller's call.
"""

import logging
import time

from classifier import classify_document
from config import settings
from extraction import extract_structured
from models import DocumentKind, DocumentType, ExtractionResponse, default_label
from normalizer import normalize_result
from preprocessing import prepare_image
from regex_extractor import extract_from_text
from vision_client import VisionClient

logger = logging.getLogger(__name__)


async def run_pipeline(
    image_bytes: bytes,
    mime_type: str,
    kind: DocumentKind,
    client: VisionClient,
    *,
    ocr_text: str | None = None,
    timeout: float | None = None,
    preprocess_images: bool | None = None,
) -> ExtractionResponse:
    """Extract the fields of *kind* from one receipt image.

    ocr_text, when the caller has it, feeds the regex fallback; otherwise the
    fallback scans the model's own (non-JSON) answer.
    """
    start = time.monotonic()

    if preprocess_images is None:
        preprocess_images = settings.PREPROCESS_IMAGES

    if preprocess_images:
        prepared, prepared_mime = prepare_image(image_bytes, mime_type)
        logger.info("Prepared image: %d bytes -> %d bytes", len(image_bytes), len(prepared))
    else:
        prepared, prepared_mime = image_bytes, mime_type

    logger.debug("pipeline: classifying")
    document_type = await classify_document(prepared, prepared_mime, kind, client, timeout=timeout)
    logger.info("Classified as %s (confidence=%.2f)", document_type.label, document_type.confidence)

    logger.debug("pipeline: extracting (structured)")
    attempt = await extract_structured(prepared, prepared_mime, document_type, kind, client, timeout=timeout)
    warnings = list(attempt.warnings)

    if not attempt.failed:
        source = "structured"
        candidates = attempt.fields
    else:
        fallback_text = ocr_text if ocr_text and ocr_text.strip() else attempt.raw_text
        if fallback_text and fallback_text.strip():
            logger.info("pipeline: extracting (fallback) over %d chars", len(fallback_text))
            source = "fallback"
            warnings.append("Fields were read with the text fallback and may be incomplete")
        else:
            logger.info("pipeline: no text available for fallback")
            source = "empty"
            warnings.append("Could not extract any fields from the image; fill them in manually")
        candidates = extract_from_text(fallback_text, kind)

    logger.debug("pipeline: normalizing")
    result = normalize_result(candidates, document_type, kind)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    extracted = sum(1 for name, item in result.items() if item.extracted)
    logger.info("pipeline: done source=%s fields=%d in %dms", source, extracted, elapsed_ms)

    return ExtractionResponse(
        kind=kind,
        result=result,
        source=source,
        warnings=warnings,
        processing_time_ms=elapsed_ms,
    )


def extract_text_only(text: str, kind: DocumentKind) -> ExtractionResponse:
    """Regex-only path for callers that already ran their own OCR.

    No classification happens, so the document type comes back empty.
    """
    start = time.monotonic()
    has_text = bool(text and text.strip())

    result = normalize_result(
        extract_from_text(text, kind),
        DocumentType(label=default_label(kind), confidence=0.0),
        kind,
    )
    warnings = [] if has_text else ["No text supplied"]

    return ExtractionResponse(
        kind=kind,
        result=result,
        source="fallback" if has_text else "empty",
        warnings=warnings,
        processing_time_ms=int((time.monotonic() - start) * 1000),
    )
