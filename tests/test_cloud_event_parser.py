from datetime import date
from decimal import Decimal
from unittest.mock import patch

import pytest

from finko.modules.bancochile.parser import CloudEventParser, parse_localized_amount


def event(data, type_="cl.bancochile.movimiento", time="2024-02-10T14:30:00Z", **extra):
    return {
        "specversion": "1.0",
        "type": type_,
        "source": "/bancochile/notificaciones",
        "id": "evt-1",
        "time": time,
        "data": data,
        **extra,
    }


@pytest.fixture
def parser():
    return CloudEventParser()


class TestAmount:
    """Amount probing: monto, amount, valor; numbers or Chilean formatted strings."""

    def test_thousands_separated_string(self, parser):
        parsed = parser.parse(event({"monto": "25.000"}))
        assert parsed.amount == Decimal("25000")

    def test_decimal_comma(self, parser):
        parsed = parser.parse(event({"monto": "1.234,56"}))
        assert parsed.amount == Decimal("1234.56")

    def test_numeric_monto_wins_over_amount(self, parser):
        parsed = parser.parse(event({"monto": 100, "amount": 200}))
        assert parsed.amount == Decimal("100")

    def test_falls_through_to_amount_then_valor(self, parser):
        assert parser.parse(event({"amount": "3.500"})).amount == Decimal("3500")
        assert parser.parse(event({"valor": 990})).amount == Decimal("990")

    def test_unparsable_monto_string_falls_through(self, parser):
        parsed = parser.parse(event({"monto": "abc", "amount": 50}))
        assert parsed.amount == Decimal("50")

    def test_negative_number_is_booked_by_magnitude(self, parser):
        parsed = parser.parse(event({"monto": -4500}))
        assert parsed.amount == Decimal("4500")
        assert parsed.direction == "expense"

    def test_no_amount_field_returns_none(self, parser):
        assert parser.parse(event({"comercio": "Lider", "fecha": "2024-01-15"})) is None

    def test_zero_and_booleans_are_not_amounts(self, parser):
        assert parser.parse(event({"monto": 0})) is None
        assert parser.parse(event({"monto": True})) is None
        assert parser.parse(event({"monto": "0"})) is None

    def test_missing_or_odd_data_never_raises(self, parser):
        assert parser.parse({}) is None
        assert parser.parse(event(None)) is None
        assert parser.parse(event("monto=100")) is None
        assert parser.parse(event({"monto": None, "amount": [], "valor": "12"})) is None

    def test_localized_amount_helper(self):
        assert parse_localized_amount("$ 1.000") is None
        assert parse_localized_amount("15.500 CLP") == Decimal("15500")
        assert parse_localized_amount("-10") is None


class TestMerchant:
    def test_extractor_precedence(self, parser):
        data = {"monto": 1, "merchant": "B", "establecimiento": "C", "comercio": "  A  "}
        assert parser.parse(event(data)).merchant == "A"

    def test_blank_values_are_skipped(self, parser):
        data = {"monto": 1, "comercio": "   ", "descripcion": "Transferencia"}
        assert parser.parse(event(data)).merchant == "Transferencia"

    def test_default_merchant(self, parser):
        assert parser.parse(event({"monto": 1})).merchant == "Banco de Chile"


class TestDate:
    def test_fecha_with_timestamp_keeps_calendar_date(self, parser):
        parsed = parser.parse(event({"monto": 1, "fecha": "2024-01-15T23:59:59.000Z"}))
        assert parsed.date == date(2024, 1, 15)

    def test_invalid_fecha_falls_back_to_next_field(self, parser):
        data = {"monto": 1, "fecha": "15/01/2024", "fechaTransaccion": "2024-01-16"}
        assert parser.parse(event(data)).date == date(2024, 1, 16)

    def test_falls_back_to_event_time(self, parser):
        assert parser.parse(event({"monto": 1})).date == date(2024, 2, 10)

    def test_falls_back_to_today(self, parser):
        with patch("finko.modules.bancochile.parser.today", return_value=date(2025, 5, 5)):
            parsed = parser.parse(event({"monto": 1}, time="not a date"))
        assert parsed.date == date(2025, 5, 5)


class TestDirection:
    @pytest.mark.parametrize(
        "type_,expected",
        [
            ("cl.bancochile.abono", "income"),
            ("cl.bancochile.cargo", "expense"),
            ("movimiento.DEPOSITO", "income"),
            ("movimiento.pago", "expense"),
        ],
    )
    def test_event_type(self, parser, type_, expected):
        assert parser.parse(event({"monto": 1}, type_=type_)).direction == expected

    def test_event_type_beats_data_tipo(self, parser):
        parsed = parser.parse(event({"monto": 1, "tipo": "ABONO"}, type_="movimiento.cargo"))
        assert parsed.direction == "expense"

    def test_data_tipo_when_type_is_neutral(self, parser):
        assert parser.parse(event({"monto": 1, "tipo": "ABONO"})).direction == "income"

    def test_tipo_movimiento_with_accents(self, parser):
        parsed = parser.parse(event({"monto": 1, "tipoMovimiento": "Crédito"}))
        assert parsed.direction == "income"

    def test_defaults_to_expense(self, parser):
        assert parser.parse(event({"monto": 1})).direction == "expense"


def test_supermarket_charge_scenario(parser):
    parsed = parser.parse(
        event(
            {"monto": 15500, "comercio": "Supermercado Lider", "fecha": "2024-01-15"},
            type_="movimiento.cargo",
        )
    )
    assert parsed.amount == Decimal("15500")
    assert parsed.merchant == "Supermercado Lider"
    assert parsed.date == date(2024, 1, 15)
    assert parsed.direction == "expense"
