"""Field validators: total functions from a raw value to a normalized value or None.

None means "invalid" and is turned into (null, 0) by the normalizer. No
validator raises, whatever the model or the regex extractor hands it, and
every validator is idempotent on the values it accepts.
"""

import math
import re
import unicodedata
from collections.abc import Callable, Mapping
from datetime import date, datetime
from functools import partial
from typing import Any

from models import DocumentKind

ValidationRule = Callable[[Any], Any]

MIN_YEAR = 1950

MAINTENANCE_TYPES = ("preventive", "corrective")
MAINTENANCE_TYPE_ALIASES = {
    "preventiva": "preventive",
    "preventivo": "preventive",
    "corretiva": "corrective",
    "corretivo": "corrective",
}

CATEGORIES = ("oil service", "filter", "tires", "electrical", "suspension", "other")
CATEGORY_ALIASES = {
    "troca de óleo": "oil service",
    "óleo": "oil service",
    "oil change": "oil service",
    "filtro": "filter",
    "pneu": "tires",
    "pneus": "tires",
    "elétrica": "electrical",
    "suspensão": "suspension",
    "outras": "other",
    "outros": "other",
}

FUEL_TYPES = ("gasoline", "ethanol", "diesel", "cng", "flex")
FUEL_TYPE_ALIASES = {
    "gasolina": "gasoline",
    "etanol": "ethanol",
    "álcool": "ethanol",
    "gnv": "cng",
}

_ISO_DATE_RE = re.compile(r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[T ][\d:.+\-Z]*)?$")
_DAY_FIRST_DATE_RE = re.compile(r"^(\d{1,2})[-/.](\d{1,2})[-/.](\d{4})$")
_PLATE_RE = re.compile(r"^[A-Z]{3}\d[A-Z0-9]\d{2}$")
_PLATE_SEPARATORS_RE = re.compile(r"[\s.\-]")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")
_DOT_THOUSANDS_RE = re.compile(r"^-?\d{1,3}(?:\.\d{3})+$")
_GROUPED_INT_RE = re.compile(r"^\d{1,3}(?:[.,]\d{3})+$")
_PLAIN_INT_RE = re.compile(r"^[0-9]{1,12}$")
_LIST_SPLIT_RE = re.compile(r"[;\n]|,(?!\d)")


def fold(text: str) -> str:
    """Lowercase, strip accents and collapse whitespace for label comparison."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.lower().split())


def make_date(year: int, month: int, day: int, today: date | None = None) -> str | None:
    """Build a YYYY-MM-DD string if the date exists and is not in the future."""
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if parsed.year < MIN_YEAR or parsed > (today or date.today()):
        return None
    return parsed.isoformat()


def validate_date(value: Any, today: date | None = None) -> str | None:
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, date):
        return make_date(value.year, value.month, value.day, today)
    if not isinstance(value, str):
        return None

    text = value.strip()
    match = _ISO_DATE_RE.match(text)
    if match:
        year, month, day = match.groups()
    else:
        match = _DAY_FIRST_DATE_RE.match(text)
        if not match:
            return None
        day, month, year = match.groups()
    return make_date(int(year), int(month), int(day), today)


def parse_number(value: Any) -> float | None:
    """Parse a number written the Brazilian way ("R$ 1.234,56") or plainly.

    Returns None for anything that is not a finite number.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = re.sub(r"(?i)r\$|reais|\s+", "", value)
        if "," in text and "." in text:
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        elif "," in text:
            text = text.replace(",", ".")
        elif _DOT_THOUSANDS_RE.match(text):
            text = text.replace(".", "")
        if not _NUMBER_RE.match(text):
            return None
        number = float(text)
    else:
        return None
    return number if math.isfinite(number) else None


def _positive(value: Any, digits: int) -> float | None:
    number = parse_number(value)
    if number is None or number <= 0:
        return None
    return round(number, digits)


def validate_currency(value: Any) -> float | None:
    return _positive(value, 2)


def validate_decimal(value: Any) -> float | None:
    """Positive quantity such as litres or price per litre."""
    return _positive(value, 3)


def validate_integer(value: Any) -> int | None:
    """Non-negative integer such as an odometer reading ("45.000 km" -> 45000)."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer() and value >= 0:
            return int(value)
        return None
    if not isinstance(value, str):
        return None

    text = value.strip().lower()
    if text.endswith("km"):
        text = text[:-2].strip()
    if _GROUPED_INT_RE.match(text):
        text = text.replace(".", "").replace(",", "")
    if not _PLAIN_INT_RE.match(text):
        return None
    return int(text)


def validate_choice(
    value: Any,
    choices: tuple[str, ...],
    aliases: Mapping[str, str] | None = None,
) -> str | None:
    """Map a label onto a closed set, accepting known aliases."""
    if not isinstance(value, str):
        return None
    key = fold(value)
    for choice in choices:
        if fold(choice) == key:
            return choice
    for alias, canonical in (aliases or {}).items():
        if fold(alias) == key:
            return canonical
    return None


def validate_plate(value: Any) -> str | None:
    """Brazilian plate: legacy AAA9999 or Mercosul AAA9A99."""
    if not isinstance(value, str):
        return None
    plate = _PLATE_SEPARATORS_RE.sub("", value).upper()
    return plate if _PLATE_RE.match(plate) else None


def validate_text(value: Any, max_length: int = 500) -> str | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)) and math.isfinite(value):
        value = str(value)
    if not isinstance(value, str):
        return None
    text = " ".join(value.split())[:max_length].strip()
    return text or None


def validate_text_list(value: Any) -> list[str] | None:
    """List of non-empty strings; a delimited string is split into items."""
    if isinstance(value, str):
        value = _LIST_SPLIT_RE.split(value)
    if not isinstance(value, (list, tuple)):
        return None
    items = [text for text in (validate_text(item) for item in value) if text is not None]
    return items or None


validate_maintenance_type = partial(validate_choice, choices=MAINTENANCE_TYPES, aliases=MAINTENANCE_TYPE_ALIASES)
validate_category = partial(validate_choice, choices=CATEGORIES, aliases=CATEGORY_ALIASES)
validate_fuel_type = partial(validate_choice, choices=FUEL_TYPES, aliases=FUEL_TYPE_ALIASES)


def rules_for(kind: DocumentKind, today: date | None = None) -> dict[str, ValidationRule]:
    """Validation rule per schema field; the keys define the schema of each kind."""
    check_date = partial(validate_date, today=today)

    if kind is DocumentKind.FUEL:
        return {
            "date": check_date,
            "total_value": validate_currency,
            "plate": validate_plate,
            "category": validate_category,
            "litres": validate_decimal,
            "price_per_litre": validate_decimal,
            "fuel_type": validate_fuel_type,
            "station": validate_text,
        }

    return {
        "maintenance_type": validate_maintenance_type,
        "date": check_date,
        "description": validate_text,
        "total_value": validate_currency,
        "workshop": validate_text,
        "odometer": validate_integer,
        "service_list": validate_text_list,
        "next_service_hint": validate_text,
        "plate": validate_plate,
        "category": validate_category,
    }


def schema_fields(kind: DocumentKind) -> tuple[str, ...]:
    return tuple(rules_for(kind))
