"""Prompts for classifying and extracting Brazilian fuel and maintenance receipts.

Field descriptions are keyed by the same names as the validation rules, so a
field added to a schema must be described here as well.
"""

import json

from models import DOCUMENT_LABELS, DocumentKind, DocumentType

_JSON_SUFFIX = """

CRITICAL OUTPUT RULES:
- Return ONLY a single valid JSON object. No other text before or after.
- Do NOT include any thinking, preamble, explanation, or markdown formatting.
- Do NOT wrap in code fences. Just raw JSON."""

LABEL_DESCRIPTIONS: dict[str, str] = {
    "simple_receipt": "simple invoice or receipt (nota fiscal simples / recibo)",
    "quote": "quote or estimate for services (orçamento)",
    "service_order": "workshop service order (ordem de serviço / OS)",
    "oil_change_receipt": "oil change receipt or sticker (comprovante de troca de óleo)",
    "fuel_receipt": "fuel station receipt (cupom / comprovante de abastecimento)",
    "pump_display": "photo of the fuel pump display (bomba de combustível)",
}

FIELD_DESCRIPTIONS: dict[DocumentKind, dict[str, str]] = {
    DocumentKind.MAINTENANCE: {
        "maintenance_type": '"preventive" or "corrective" (preventiva/corretiva), judged from context',
        "date": "service date in YYYY-MM-DD format",
        "description": "short description of the services performed (text)",
        "total_value": "total amount paid in BRL as a decimal number, e.g. 350.00",
        "workshop": "name of the workshop or establishment (oficina)",
        "odometer": "odometer reading in km at the time of service (integer)",
        "service_list": "array of strings, one per service or part listed",
        "next_service_hint": "suggested next service, in km or as a date",
        "plate": "vehicle plate if visible, e.g. ABC1234 or ABC1D23",
        "category": 'one of "oil service", "filter", "tires", "electrical", "suspension", "other"',
    },
    DocumentKind.FUEL: {
        "date": "fueling date in YYYY-MM-DD format",
        "total_value": "total amount paid in BRL as a decimal number, e.g. 250.00",
        "plate": "vehicle plate if printed on the receipt, e.g. ABC1234 or ABC1D23",
        "category": 'one of "oil service", "filter", "tires", "electrical", "suspension", "other" if the receipt is not for fuel only',
        "litres": "quantity of fuel in litres (decimal number, e.g. 45.5)",
        "price_per_litre": "price per litre in BRL (decimal number, e.g. 5.49)",
        "fuel_type": 'one of "gasoline", "ethanol", "diesel", "cng", "flex"',
        "station": "name or brand of the fuel station (posto)",
    },
}

_SUBJECT = {
    DocumentKind.MAINTENANCE: "an automotive maintenance document",
    DocumentKind.FUEL: "a fuel pump display or fueling receipt",
}


def classification_prompt(kind: DocumentKind) -> str:
    labels = "\n".join(f"- {label}: {LABEL_DESCRIPTIONS[label]}" for label in DOCUMENT_LABELS[kind])
    return f"""You are looking at a photo of {_SUBJECT[kind]} from Brazil.
Classify the document into exactly one of these types:

{labels}

Return a JSON object with the chosen type and your confidence from 0.0 to 1.0:

{{"label": "{DOCUMENT_LABELS[kind][0]}", "confidence": 0.95}}""" + _JSON_SUFFIX


def extraction_prompt(kind: DocumentKind, document_type: DocumentType) -> str:
    descriptions = FIELD_DESCRIPTIONS[kind]
    fields = "\n".join(f"- {name}: {meaning}" for name, meaning in descriptions.items())
    example = json.dumps(
        {name: {"value": None, "confidence": 0.0} for name in descriptions},
        indent=2,
    )
    doc_label = LABEL_DESCRIPTIONS.get(document_type.label, document_type.label)
    return f"""You are analyzing a photo of {_SUBJECT[kind]} from Brazil.
It was classified as: {doc_label}.

Extract the following fields if they are visible in the image:

{fields}

For EVERY field return an object with "value" and "confidence" (0.0 = unsure, 1.0 = certain).
Use EXACTLY these keys:

{example}

Important:
- Use null as the value (with confidence 0.0) for fields that are not visible
- Amounts use Brazilian notation on the document (R$ 1.234,56); return them as numbers (1234.56)
- Convert ALL dates from DD/MM/YYYY to YYYY-MM-DD format""" + _JSON_SUFFIX
