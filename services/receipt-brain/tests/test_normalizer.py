"""Tests for the final normalization stage."""

import sys
from datetime import date
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from extraction import parse_fields
from models import DOCUMENT_TYPE_FIELD, DocumentKind, DocumentType, FieldResult
from normalizer import normalize_result
from regex_extractor import extract_from_text
from validators import schema_fields

QUOTE = DocumentType(label="quote", confidence=0.9)


def assert_well_formed(result):
    for name, item in result.items():
        assert 0.0 <= item.confidence <= 1.0, name
        assert (item.value is None) == (item.confidence == 0.0), name


class TestNormalizeResult:
    def test_valid_values_kept_and_normalized(self, today: date):
        candidates = {
            "date": FieldResult(value="15/01/2025", confidence=0.9),
            "total_value": FieldResult(value="R$ 1.234,56", confidence=0.8),
            "plate": FieldResult(value="abc-1d23", confidence=0.6),
            "odometer": FieldResult(value="45.000 km", confidence=0.5),
            "maintenance_type": FieldResult(value="Corretiva", confidence=0.7),
        }
        result = normalize_result(candidates, QUOTE, DocumentKind.MAINTENANCE, today)

        assert result["date"] == FieldResult(value="2025-01-15", confidence=0.9)
        assert result["total_value"].value == 1234.56
        assert result["plate"].value == "ABC1D23"
        assert result["odometer"].value == 45000
        assert result["maintenance_type"].value == "corrective"

    def test_invalid_values_zeroed(self, today: date):
        candidates = {
            "date": FieldResult(value="2099-01-01", confidence=0.95),
            "total_value": FieldResult(value=-50, confidence=0.9),
            "category": FieldResult(value="paint job", confidence=0.9),
            "plate": FieldResult(value="ab12cd", confidence=0.9),
            "odometer": FieldResult(value={"km": 1}, confidence=0.9),
        }
        result = normalize_result(candidates, QUOTE, DocumentKind.MAINTENANCE, today)

        for name in candidates:
            assert result[name] == FieldResult(value=None, confidence=0.0)

    def test_zero_confidence_value_dropped(self, today: date):
        candidates = {"category": FieldResult(value="other", confidence=0.0)}
        result = normalize_result(candidates, QUOTE, DocumentKind.MAINTENANCE, today)
        assert result["category"].value is None

    def test_schema_keys_plus_document_type(self, today: date):
        candidates = {"unexpected": FieldResult(value="x", confidence=0.9)}
        result = normalize_result(candidates, QUOTE, DocumentKind.FUEL, today)

        assert set(result.keys()) == set(schema_fields(DocumentKind.FUEL)) | {DOCUMENT_TYPE_FIELD}
        assert "unexpected" not in result

    def test_document_type_folded_in(self, today: date):
        result = normalize_result({}, QUOTE, DocumentKind.MAINTENANCE, today)
        assert result[DOCUMENT_TYPE_FIELD] == FieldResult(value="quote", confidence=0.9)

    def test_document_type_without_confidence(self, today: date):
        result = normalize_result({}, DocumentType(label="quote", confidence=0.0), DocumentKind.MAINTENANCE, today)
        assert result[DOCUMENT_TYPE_FIELD].value is None

    def test_serializes_to_wire_shape(self, today: date):
        candidates = {"total_value": FieldResult(value=350, confidence=0.9)}
        dumped = normalize_result(candidates, QUOTE, DocumentKind.MAINTENANCE, today).model_dump()

        assert dumped["total_value"] == {"value": 350.0, "confidence": 0.9}
        assert dumped["workshop"] == {"value": None, "confidence": 0.0}

    def test_renormalizing_is_stable(self, today: date, mock_maintenance_response: str):
        first = normalize_result(parse_fields(mock_maintenance_response, DocumentKind.MAINTENANCE), QUOTE,
                                 DocumentKind.MAINTENANCE, today)
        second = normalize_result(dict(first.items()), QUOTE, DocumentKind.MAINTENANCE, today)
        assert first == second

    @pytest.mark.parametrize(
        "text",
        [
            "Troca de óleo... R$ 350,00 ... 15/01/2025",
            "lavagem R$ 40,00",
            "-50,00 31/02/2025 ab12cd",
            "",
        ],
    )
    def test_regex_output_is_well_formed(self, text: str, today: date):
        for kind in DocumentKind:
            result = normalize_result(extract_from_text(text, kind), QUOTE, kind, today)
            assert_well_formed(result)

    def test_model_output_is_well_formed(self, today: date, mock_maintenance_response: str, mock_fuel_response: str):
        for raw, kind in ((mock_maintenance_response, DocumentKind.MAINTENANCE), (mock_fuel_response, DocumentKind.FUEL)):
            result = normalize_result(parse_fields(raw, kind), QUOTE, kind, today)
            assert_well_formed(result)
