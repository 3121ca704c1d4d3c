"""Structured field extraction through the vision model.

One model call per image. The answer is treated as an untyped tree and
coerced field by field into FieldResult candidates; nothing downstream sees
the model's JSON directly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from config import settings
from json_tools import try_parse_json
from models import EMPTY, DocumentKind, DocumentType, FieldResult
from prompts import extraction_prompt
from validators import schema_fields
from vision_client import VisionClient, VisionClientError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructuredAttempt:
    """Outcome of the structured extraction call.

    fields is None when extraction failed; raw_text then holds whatever the
    model answered (possibly empty) for the regex fallback.
    """

    fields: dict[str, FieldResult] | None
    raw_text: str = ""
    warnings: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.fields is None


async def extract_structured(
    image_bytes: bytes,
    mime_type: str,
    document_type: DocumentType,
    kind: DocumentKind,
    client: VisionClient,
    timeout: float | None = None,
) -> StructuredAttempt:
    """Ask the model for every schema field of *kind*. Never raises."""
    prompt = extraction_prompt(kind, document_type)

    try:
        raw_text, inference_ms = await client.infer(
            image_bytes,
            mime_type,
            prompt,
            max_tokens=settings.EXTRACT_MAX_TOKENS,
            timeout=timeout,
        )
    except VisionClientError as e:
        logger.error("Structured extraction call failed: %s", e)
        return StructuredAttempt(fields=None, warnings=[f"Vision model inference failed: {e}"])

    logger.info("Extraction inference completed in %dms (%d chars)", inference_ms, len(raw_text))

    fields = parse_fields(raw_text, kind)
    if fields is None:
        return StructuredAttempt(
            fields=None,
            raw_text=raw_text,
            warnings=["Vision model answer was not a usable JSON object"],
        )
    return StructuredAttempt(fields=fields, raw_text=raw_text)


def parse_fields(raw_text: str, kind: DocumentKind) -> dict[str, FieldResult] | None:
    """Coerce the model's JSON into one candidate per schema field.

    Returns None when there is no JSON object or it holds none of the
    expected keys.
    """
    parsed = try_parse_json(raw_text)
    if parsed is None:
        return None

    expected = schema_fields(kind)
    if not any(name in parsed for name in expected):
        logger.warning("Model JSON has none of the %s fields: %s", kind.value, sorted(parsed)[:10])
        return None

    return {name: coerce_field(parsed.get(name)) for name in expected}


def coerce_field(node: Any) -> FieldResult:
    """Turn one untyped JSON node into a FieldResult candidate.

    {"value": v, "confidence": c} is kept as is. A bare value, or a value
    without a usable confidence, gets BARE_VALUE_CONFIDENCE: a model that
    skipped the requested shape is usually right but never fully trusted.
    """
    if node is None:
        return EMPTY

    if isinstance(node, dict):
        if "value" not in node:
            return EMPTY
        value = node["value"]
        confidence = node.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = settings.BARE_VALUE_CONFIDENCE
        return FieldResult(value=value, confidence=confidence)

    return FieldResult(value=node, confidence=settings.BARE_VALUE_CONFIDENCE)
