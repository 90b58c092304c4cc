"""
Turns a Banco de Chile CloudEvent into a single transaction.

The bank's payloads are loosely typed and field names vary between products,
so every field is read by an ordered list of small extractors. The first one
returning a value wins.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Literal, Mapping, Optional, Sequence, TypeVar

from finko.utils.datetime import parse_iso_date, parse_timestamp_date, today

logger = logging.getLogger(__name__)

Direction = Literal["expense", "income"]

DEFAULT_MERCHANT = "Banco de Chile"

EXPENSE_MARKERS = ("cargo", "debito", "pago", "egreso")
INCOME_MARKERS = ("abono", "credito", "ingreso", "deposito")

_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)")

T = TypeVar("T")
Extractor = Callable[[Mapping[str, Any], Mapping[str, Any]], Optional[T]]


@dataclass(frozen=True)
class ParsedTransaction:
    amount: Decimal
    merchant: str
    date: date
    direction: Direction

    @property
    def is_income(self) -> bool:
        return self.direction == "income"


def first_match(
    extractors: Sequence[Extractor], envelope: Mapping[str, Any], data: Mapping[str, Any]
) -> Optional[Any]:
    for extractor in extractors:
        value = extractor(envelope, data)
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# amount
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_localized_amount(raw: str) -> Optional[Decimal]:
    """
    "25.000" -> 25000, "1.234,56" -> 1234.56. Dots are thousands separators,
    the first comma is the decimal mark. Only positive values count.
    """
    cleaned = raw.replace(".", "").replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None
    try:
        amount = Decimal(match.group(0).strip())
    except InvalidOperation:
        return None
    return amount if amount > 0 else None


def _numeric(field: str) -> Extractor[Decimal]:
    def extract(envelope, data) -> Optional[Decimal]:
        value = data.get(field)
        if not _is_number(value) or value == 0:
            return None
        amount = Decimal(str(value))
        # Charges sometimes arrive signed; the sign is read by direction probing
        return abs(amount) if amount.is_finite() else None

    return extract


def _localized(field: str) -> Extractor[Decimal]:
    def extract(envelope, data) -> Optional[Decimal]:
        value = data.get(field)
        return parse_localized_amount(value) if isinstance(value, str) else None

    return extract


AMOUNT_EXTRACTORS: list[Extractor[Decimal]] = [
    _numeric("monto"),
    _localized("monto"),
    _numeric("amount"),
    _localized("amount"),
    _numeric("valor"),
]


# ---------------------------------------------------------------------------
# merchant
# ---------------------------------------------------------------------------


def _text(field: str) -> Extractor[str]:
    def extract(envelope, data) -> Optional[str]:
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    return extract


MERCHANT_EXTRACTORS: list[Extractor[str]] = [
    _text("comercio"),
    _text("merchant"),
    _text("establecimiento"),
    _text("descripcion"),
    _text("concepto"),
]


# ---------------------------------------------------------------------------
# date
# ---------------------------------------------------------------------------


def _data_date(field: str) -> Extractor[date]:
    def extract(envelope, data) -> Optional[date]:
        value = data.get(field)
        return parse_iso_date(value) if isinstance(value, str) else None

    return extract


def _event_time(envelope, data) -> Optional[date]:
    value = envelope.get("time")
    return parse_timestamp_date(value) if isinstance(value, str) and value else None


DATE_EXTRACTORS: list[Extractor[date]] = [
    _data_date("fecha"),
    _data_date("date"),
    _data_date("fechaTransaccion"),
    _event_time,
]


# ---------------------------------------------------------------------------
# direction
# ---------------------------------------------------------------------------


def _fold(text: str) -> str:
    """Lower case without accents, so "Débito" matches "debito"."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def classify_direction(text: Any) -> Optional[Direction]:
    if not isinstance(text, str) or not text:
        return None
    folded = _fold(text)
    if any(marker in folded for marker in EXPENSE_MARKERS):
        return "expense"
    if any(marker in folded for marker in INCOME_MARKERS):
        return "income"
    return None


def _event_type(envelope, data) -> Optional[Direction]:
    return classify_direction(envelope.get("type"))


def _data_field_direction(field: str) -> Extractor[Direction]:
    def extract(envelope, data) -> Optional[Direction]:
        return classify_direction(data.get(field))

    return extract


def _negative_amount(envelope, data) -> Optional[Direction]:
    value = data.get("monto")
    return "expense" if _is_number(value) and value < 0 else None


DIRECTION_EXTRACTORS: list[Extractor[Direction]] = [
    _event_type,
    _data_field_direction("tipo"),
    _data_field_direction("tipoMovimiento"),
    _negative_amount,
]


class CloudEventParser:
    """Pure and synchronous: never raises on odd payloads, returns None instead."""

    def parse(self, event: Mapping[str, Any]) -> Optional[ParsedTransaction]:
        data = event.get("data") if isinstance(event, Mapping) else None
        if not isinstance(data, Mapping) or not data:
            return None

        amount = first_match(AMOUNT_EXTRACTORS, event, data)
        if amount is None:
            logger.debug(f"No amount found in event {event.get('id')}")
            return None

        return ParsedTransaction(
            amount=amount,
            merchant=first_match(MERCHANT_EXTRACTORS, event, data) or DEFAULT_MERCHANT,
            date=first_match(DATE_EXTRACTORS, event, data) or today(),
            # Unlabelled movements are booked as expenses
            direction=first_match(DIRECTION_EXTRACTORS, event, data) or "expense",
        )
