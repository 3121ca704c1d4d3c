"""Tests for structured extraction and JSON coercion."""

import json
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from config import settings
from extraction import coerce_field, extract_structured, parse_fields
from models import DocumentKind, DocumentType
from validators import schema_fields
from vision_client import VisionServiceError, VisionServiceUnavailable

SERVICE_ORDER = DocumentType(label="service_order", confidence=0.9)


class TestCoerceField:
    def test_wire_shape_kept(self):
        item = coerce_field({"value": "2025-01-15", "confidence": 0.95})
        assert item.value == "2025-01-15"
        assert item.confidence == 0.95

    def test_bare_value_gets_reduced_confidence(self):
        item = coerce_field(350.0)
        assert item.value == 350.0
        assert item.confidence == settings.BARE_VALUE_CONFIDENCE
        assert item.confidence < 1.0

    def test_value_without_confidence(self):
        item = coerce_field({"value": "ABC1234"})
        assert item.confidence == settings.BARE_VALUE_CONFIDENCE

    def test_non_numeric_confidence(self):
        assert coerce_field({"value": "x", "confidence": "high"}).confidence == settings.BARE_VALUE_CONFIDENCE
        assert coerce_field({"value": "x", "confidence": True}).confidence == settings.BARE_VALUE_CONFIDENCE

    def test_confidence_clamped(self):
        assert coerce_field({"value": "x", "confidence": 3}).confidence == 1.0
        assert coerce_field({"value": "x", "confidence": -2}).confidence == 0.0

    def test_huge_integer_confidence(self):
        assert coerce_field({"value": "x", "confidence": 10**400}).confidence == 1.0
        assert coerce_field({"value": "x", "confidence": -(10**400)}).confidence == 0.0

    def test_null_value(self):
        item = coerce_field({"value": None, "confidence": 0.9})
        assert item.value is None
        assert item.confidence == 0.0
        assert coerce_field(None).confidence == 0.0

    def test_object_without_value(self):
        item = coerce_field({"valor": 10})
        assert item.value is None
        assert item.confidence == 0.0


class TestParseFields:
    def test_maintenance_shape(self, mock_maintenance_response: str):
        fields = parse_fields(mock_maintenance_response, DocumentKind.MAINTENANCE)
        assert set(fields) == set(schema_fields(DocumentKind.MAINTENANCE))
        assert fields["workshop"].value == "Auto Center XYZ"
        assert fields["workshop"].confidence == 0.8

    def test_bare_fuel_answer(self, mock_fuel_response: str):
        fields = parse_fields(mock_fuel_response, DocumentKind.FUEL)
        assert fields["litres"].value == 40.5
        assert fields["litres"].confidence == settings.BARE_VALUE_CONFIDENCE
        assert fields["plate"].value is None
        assert fields["plate"].confidence == 0.0

    def test_missing_fields_are_empty(self):
        fields = parse_fields('{"date": {"value": "2025-01-15", "confidence": 0.9}}', DocumentKind.MAINTENANCE)
        assert fields["workshop"].value is None
        assert fields["workshop"].confidence == 0.0

    def test_unknown_keys_dropped(self):
        fields = parse_fields('{"date": "2025-01-15", "extra": "x"}', DocumentKind.FUEL)
        assert "extra" not in fields

    def test_no_expected_keys_is_failure(self):
        assert parse_fields('{"first_name": "Max"}', DocumentKind.MAINTENANCE) is None

    def test_not_json_is_failure(self):
        assert parse_fields("Troca de óleo... R$ 350,00", DocumentKind.MAINTENANCE) is None

    def test_wrapped_in_prose(self, mock_maintenance_response: str):
        raw = f"Segue o resultado:\n{mock_maintenance_response}\nQualquer dúvida, avise."
        fields = parse_fields(raw, DocumentKind.MAINTENANCE)
        assert fields is not None
        assert fields["total_value"].value == 350.0


class TestExtractStructured:
    @pytest.mark.asyncio
    async def test_success(self, mock_client, sample_image_bytes: bytes, mock_maintenance_response: str):
        mock_client.infer.return_value = (mock_maintenance_response, 4000)

        attempt = await extract_structured(
            sample_image_bytes, "image/jpeg", SERVICE_ORDER, DocumentKind.MAINTENANCE, mock_client
        )

        assert not attempt.failed
        assert attempt.fields["date"].value == "2025-01-15"
        assert attempt.warnings == []

    @pytest.mark.asyncio
    async def test_prompt_mentions_classification_and_fields(self, mock_client, sample_image_bytes: bytes):
        mock_client.infer.return_value = ("{}", 10)

        await extract_structured(sample_image_bytes, "image/jpeg", SERVICE_ORDER, DocumentKind.MAINTENANCE, mock_client)

        prompt = mock_client.infer.call_args.args[2]
        assert "ordem de serviço" in prompt
        for name in schema_fields(DocumentKind.MAINTENANCE):
            assert f'"{name}"' in prompt
        assert mock_client.infer.call_args.kwargs["max_tokens"] == settings.EXTRACT_MAX_TOKENS

    @pytest.mark.asyncio
    async def test_malformed_answer_keeps_raw_text(self, mock_client, sample_image_bytes: bytes):
        mock_client.infer.return_value = ("Troca de óleo... R$ 350,00 ... 15/01/2025", 900)

        attempt = await extract_structured(
            sample_image_bytes, "image/jpeg", SERVICE_ORDER, DocumentKind.MAINTENANCE, mock_client
        )

        assert attempt.failed
        assert "350,00" in attempt.raw_text
        assert len(attempt.warnings) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [VisionServiceUnavailable("timed out"), VisionServiceError("Internal error")])
    async def test_transport_failure(self, mock_client, sample_image_bytes: bytes, error):
        mock_client.infer.side_effect = error

        attempt = await extract_structured(
            sample_image_bytes, "image/jpeg", SERVICE_ORDER, DocumentKind.FUEL, mock_client
        )

        assert attempt.failed
        assert attempt.raw_text == ""
        assert "failed" in attempt.warnings[0].lower()

    @pytest.mark.asyncio
    async def test_bare_values_from_model(self, mock_client, sample_image_bytes: bytes):
        mock_client.infer.return_value = (json.dumps({"date": "2025-03-20", "total_value": 250.7}), 10)

        attempt = await extract_structured(
            sample_image_bytes, "image/jpeg", DocumentType(label="fuel_receipt", confidence=0.8),
            DocumentKind.FUEL, mock_client,
        )

        assert attempt.fields["total_value"].confidence == 0.7
