"""Regex fallback extractor over already recognized receipt text.

No network calls and no state: the same text always yields the same
candidates. Every matcher runs on its own, so a receipt where only the date
is readable still produces that date. Confidences come from settings and are
capped by REGEX_MAX_CONFIDENCE, since a pattern hit is weaker evidence than a
vision model reading the same document.
"""

import re
from collections.abc import Callable
from datetime import date
from typing import Any

from config import settings
from models import EMPTY, DocumentKind, FieldResult
from validators import fold, schema_fields, validate_currency, validate_decimal, validate_integer

Predicate = Callable[[str], bool]

_DATE_RE = re.compile(
    r"(?<!\d)(?:(?P<day>\d{2})[/-](?P<month>\d{2})[/-](?P<year>\d{4})"
    r"|(?P<iso_year>\d{4})[/-](?P<iso_month>\d{2})[/-](?P<iso_day>\d{2}))(?!\d)"
)

_DECIMAL_AMOUNT = r"\d{1,3}(?:\.\d{3})+,\d{2}|\d+,\d{2}"
_ANY_AMOUNT = r"\d{1,3}(?:\.\d{3})+(?:,\d{2})?|\d+(?:,\d{2})?"

# Tried in order: labeled total, R$-prefixed amount, bare decimal-comma amount
_CURRENCY_PATTERNS = (
    re.compile(rf"(?<![a-z])total[^\d]{{0,25}}?(?P<sign>-)?(?P<amount>{_DECIMAL_AMOUNT})(?![\d,])"),
    re.compile(rf"(?P<sign>-)?r\$\s*(?P<inner>-)?\s*(?P<amount>{_ANY_AMOUNT})(?![\d,])"),
    re.compile(rf"(?<![\d.,/])(?P<sign>-)?(?P<amount>{_DECIMAL_AMOUNT})(?![\d,/])"),
)

_PLATE_RE = re.compile(r"(?<![a-z0-9])([a-z]{3})[-\s]?(\d[a-z0-9]\d{2})(?![a-z0-9])")
# Phone, postcode and tax-id labels followed by digits look like plates
_NOT_PLATE_PREFIXES = frozenset({"tel", "cel", "fax", "cep", "cpf", "nfe", "ref", "cod", "seq"})

_ODOMETER_PATTERNS = (
    re.compile(r"(?<![a-z])(?:km|quilometragem|odometro|hodometro)\s*(?:atual)?\s*[:.]?\s*(\d{1,3}(?:\.\d{3})+|\d{1,7})(?![\d,/])"),
    re.compile(r"(?<![\d.,])(\d{1,3}(?:\.\d{3})+|\d{3,7})\s*km(?![a-z/])"),
)

_LITRES_PATTERNS = (
    re.compile(r"litros?\s*[:.]?\s*(\d{1,4}(?:[.,]\d{1,3})?)(?![\d])"),
    re.compile(r"(?<![\d.,])(\d{1,4}(?:[.,]\d{1,3})?)\s*(?:litros?|lts?|l)\b"),
)

_PRICE_PER_LITRE_PATTERNS = (
    re.compile(r"(?:preco|valor)\s*(?:por\s*|/\s*)?(?:litro|l)\b\s*[:.]?\s*(?:r\$\s*)?(\d+[.,]\d{2,3})"),
    re.compile(r"(\d+[.,]\d{2,3})\s*(?:por\s*litro|/\s*l\b)"),
)


def _contains_any(*keywords: str) -> Predicate:
    folded = tuple(fold(keyword) for keyword in keywords)
    return lambda text: any(keyword in text for keyword in folded)


def _has_word(*words: str) -> Predicate:
    pattern = re.compile(r"\b(?:" + "|".join(re.escape(fold(w)) for w in words) + r")\b")
    return lambda text: pattern.search(text) is not None


# Ordered (predicate, label) tables; the first predicate that holds wins
CATEGORY_TABLE: list[tuple[Predicate, str]] = [
    (_contains_any("troca de óleo", "troca óleo", "óleo"), "oil service"),
    (_contains_any("filtro"), "filter"),
    (_contains_any("pneu", "pneus"), "tires"),
    (_contains_any("bateria", "alternador", "lampada", "farois", "elétrica"), "electrical"),
    (_contains_any("amortecedor", "suspensão"), "suspension"),
]
DEFAULT_CATEGORY = "other"

MAINTENANCE_TYPE_TABLE: list[tuple[Predicate, str]] = [
    (_contains_any("preventiva", "preventivo"), "preventive"),
    (_contains_any("corretiva", "corretivo"), "corrective"),
]

FUEL_TYPE_TABLE: list[tuple[Predicate, str]] = [
    (_contains_any("gasolina"), "gasoline"),
    (_contains_any("etanol", "álcool"), "ethanol"),
    (_contains_any("diesel"), "diesel"),
    (_has_word("gnv"), "cng"),
    (_has_word("flex"), "flex"),
]

STATION_TABLE: list[tuple[Predicate, str]] = [
    (_has_word("shell"), "Shell"),
    (_has_word("petrobras", "br distribuidora"), "Petrobras"),
    (_has_word("ipiranga"), "Ipiranga"),
    (_has_word("texaco"), "Texaco"),
    (_has_word("esso"), "Esso"),
    (_has_word("bp"), "BP"),
    (_has_word("raizen", "raízen"), "Raízen"),
    (_has_word("vibra"), "Vibra"),
]


def first_match(table: list[tuple[Predicate, str]], text: str) -> str | None:
    for predicate, label in table:
        if predicate(text):
            return label
    return None


def _hit(value: Any, confidence: float) -> FieldResult:
    if value is None:
        return EMPTY
    return FieldResult(value=value, confidence=min(confidence, settings.REGEX_MAX_CONFIDENCE))


def find_date(text: str) -> str | None:
    """First DD/MM/YYYY or YYYY-MM-DD token that is a real date in the sane window."""
    last_year = date.today().year + 1
    for match in _DATE_RE.finditer(text):
        if match.group("year"):
            year, month, day = match.group("year", "month", "day")
        else:
            year, month, day = match.group("iso_year", "iso_month", "iso_day")
        if not 1950 <= int(year) <= last_year:
            continue
        try:
            return date(int(year), int(month), int(day)).isoformat()
        except ValueError:
            continue
    return None


def find_amount(text: str) -> float | None:
    for pattern in _CURRENCY_PATTERNS:
        for match in pattern.finditer(text):
            negative = match.group("sign") or match.groupdict().get("inner")
            amount = validate_currency(("-" if negative else "") + match.group("amount"))
            if amount is not None:
                return amount
    return None


def find_plate(text: str) -> str | None:
    for match in _PLATE_RE.finditer(text):
        if match.group(1) in _NOT_PLATE_PREFIXES:
            continue
        return (match.group(1) + match.group(2)).upper()
    return None


def find_odometer(text: str) -> int | None:
    for pattern in _ODOMETER_PATTERNS:
        for match in pattern.finditer(text):
            reading = validate_integer(match.group(1))
            if reading is not None:
                return reading
    return None


def _find_decimal(patterns: tuple[re.Pattern, ...], text: str) -> float | None:
    for pattern in patterns:
        for match in pattern.finditer(text):
            number = validate_decimal(match.group(1))
            if number is not None:
                return number
    return None


def extract_from_text(text: str | None, kind: DocumentKind = DocumentKind.MAINTENANCE) -> dict[str, FieldResult]:
    """Scan recognized text and return raw candidates for every schema field.

    Fields no pattern covers (workshop, description, service list, ...) come
    back as (None, 0). The category defaults to "other" with zero confidence
    when no keyword hits.
    """
    fields = schema_fields(kind)
    if not text or not text.strip():
        return {name: EMPTY for name in fields}

    folded = fold(text)
    category = first_match(CATEGORY_TABLE, folded)

    found = {
        "date": _hit(find_date(folded), settings.REGEX_DATE_CONFIDENCE),
        "total_value": _hit(find_amount(folded), settings.REGEX_CURRENCY_CONFIDENCE),
        "plate": _hit(find_plate(folded), settings.REGEX_PLATE_CONFIDENCE),
        "odometer": _hit(find_odometer(folded), settings.REGEX_ODOMETER_CONFIDENCE),
        "maintenance_type": _hit(
            first_match(MAINTENANCE_TYPE_TABLE, folded), settings.REGEX_MAINTENANCE_TYPE_CONFIDENCE
        ),
        "category": (
            _hit(category, settings.REGEX_CATEGORY_CONFIDENCE)
            if category
            else FieldResult(value=DEFAULT_CATEGORY, confidence=0.0)
        ),
        "litres": _hit(_find_decimal(_LITRES_PATTERNS, folded), settings.REGEX_FUEL_CONFIDENCE),
        "price_per_litre": _hit(_find_decimal(_PRICE_PER_LITRE_PATTERNS, folded), settings.REGEX_FUEL_CONFIDENCE),
        "fuel_type": _hit(first_match(FUEL_TYPE_TABLE, folded), settings.REGEX_FUEL_CONFIDENCE),
        "station": _hit(first_match(STATION_TABLE, folded), settings.REGEX_FUEL_CONFIDENCE),
    }
    return {name: found.get(name, EMPTY) for name in fields}
