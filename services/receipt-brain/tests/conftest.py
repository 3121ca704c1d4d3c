"""Shared test fixtures for receipt brain tests."""

import json
import sys
from datetime import date
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

TODAY = date(2025, 6, 30)


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Generate a minimal receipt-like JPEG image for testing."""
    import cv2

    img = np.zeros((400, 200, 3), dtype=np.uint8)
    img[:] = (245, 245, 245)

    # Dark bars simulating printed lines
    for y in range(30, 370, 40):
        cv2.rectangle(img, (15, y), (185, y + 12), (30, 30, 30), -1)

    _, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, 90])
    return buf.tobytes()


@pytest.fixture
def large_image_bytes() -> bytes:
    """A phone-sized photo that must be scaled down."""
    import cv2

    img = np.zeros((4000, 3000, 3), dtype=np.uint8)
    img[:] = (200, 200, 200)
    _, buf = cv2.imencode(".jpg", img)
    return buf.tobytes()


@pytest.fixture
def invalid_bytes() -> bytes:
    """Non-image bytes for testing graceful degradation."""
    return b"this is not an image file at all"


@pytest.fixture
def oil_change_text() -> str:
    return "AUTO CENTER XYZ\nTroca de óleo 5W30 e filtro\nTotal R$ 350,00\nData: 15/01/2025\nPlaca ABC-1234\nKM 45.000"


@pytest.fixture
def fuel_receipt_text() -> str:
    return (
        "POSTO IPIRANGA LTDA\n"
        "20/03/2025 14:32\n"
        "GASOLINA COMUM\n"
        "40,500 L x R$ 6,19/L\n"
        "Preco por litro: R$ 6,19\n"
        "VALOR TOTAL R$ 250,70\n"
    )


@pytest.fixture
def mock_classification_response() -> str:
    return json.dumps({"label": "service_order", "confidence": 0.92})


@pytest.fixture
def mock_maintenance_response() -> str:
    """Model answer in the requested {value, confidence} shape."""
    return json.dumps({
        "maintenance_type": {"value": "preventiva", "confidence": 0.9},
        "date": {"value": "2025-01-15", "confidence": 0.95},
        "description": {"value": "Troca de óleo e filtros", "confidence": 0.85},
        "total_value": {"value": 350.00, "confidence": 0.9},
        "workshop": {"value": "Auto Center XYZ", "confidence": 0.8},
        "odometer": {"value": 45000, "confidence": 0.7},
        "service_list": {"value": ["Troca de óleo", "Troca de filtro"], "confidence": 0.75},
        "next_service_hint": {"value": "50000 km", "confidence": 0.6},
        "plate": {"value": "ABC1234", "confidence": 0.5},
        "category": {"value": "oil service", "confidence": 0.8},
    })


@pytest.fixture
def mock_fuel_response() -> str:
    """Model answer that skipped the {value, confidence} shape."""
    return json.dumps({
        "date": "2025-03-20",
        "total_value": 250.70,
        "plate": None,
        "category": None,
        "litres": 40.5,
        "price_per_litre": 6.19,
        "fuel_type": "gasolina",
        "station": "Posto Ipiranga",
    })


@pytest.fixture
def mock_client() -> MagicMock:
    """Vision client double; tests set infer.side_effect / return_value."""
    client = MagicMock()
    client.infer = AsyncMock()
    client.health = AsyncMock(return_value={"status": "healthy"})
    return client
