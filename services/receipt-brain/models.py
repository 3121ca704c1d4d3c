"""Pydantic models for classification, per-field results and the API envelope."""

import math
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, RootModel, field_validator, model_validator

# Reserved result key holding the recognized document type
DOCUMENT_TYPE_FIELD = "document_type"


class DocumentKind(str, Enum):
    """Field schema requested by the caller."""

    MAINTENANCE = "maintenance"
    FUEL = "fuel"


# Closed label sets for classification; the first label of each is the default
DOCUMENT_LABELS: dict[DocumentKind, tuple[str, ...]] = {
    DocumentKind.MAINTENANCE: ("simple_receipt", "quote", "service_order", "oil_change_receipt"),
    DocumentKind.FUEL: ("fuel_receipt", "pump_display"),
}


def default_label(kind: DocumentKind) -> str:
    return DOCUMENT_LABELS[kind][0]


def clamp_confidence(value: Any) -> float:
    """Coerce anything into a confidence in [0, 1]; unusable input becomes 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except OverflowError:
        return 1.0 if value > 0 else 0.0
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(1.0, max(0.0, number))


class DocumentType(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return clamp_confidence(value)


class FieldResult(BaseModel):
    """A single extracted value with its confidence.

    The value is untyped on purpose: extractors produce raw candidates and
    only the normalizer turns them into typed values. A null value always
    carries zero confidence.
    """

    model_config = ConfigDict(frozen=True)

    value: Any = None
    confidence: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _null_has_no_confidence(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("value") is None:
            return {**data, "value": None, "confidence": 0.0}
        return data

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return clamp_confidence(value)

    @property
    def extracted(self) -> bool:
        return self.value is not None and self.confidence > 0


EMPTY = FieldResult()


class ExtractionResult(RootModel[dict[str, FieldResult]]):
    """Field name -> FieldResult. Serializes to {"field": {"value", "confidence"}}."""

    model_config = ConfigDict(frozen=True)

    def __getitem__(self, name: str) -> FieldResult:
        return self.root[name]

    def __contains__(self, name: object) -> bool:
        return name in self.root

    def keys(self):
        return self.root.keys()

    def items(self):
        return self.root.items()


class ExtractionResponse(BaseModel):
    kind: DocumentKind
    result: ExtractionResult
    source: Literal["structured", "fallback", "empty"]
    warnings: list[str] = []
    processing_time_ms: int


class TextExtractionRequest(BaseModel):
    text: str
    kind: DocumentKind = DocumentKind.MAINTENANCE
