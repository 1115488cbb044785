"""Tests for the display-only currency service."""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from mrrboard.currency import (
    EXCHANGE_RATES,
    RateTable,
    convert,
    format_currency,
    get_supported_currencies,
)
from mrrboard.errors import NetworkError, UnauthorizedError


class TestConvert:

    def test_same_currency_returns_input_unchanged(self):
        amount = Decimal("10.005")
        assert convert(amount, "EUR", "EUR") is amount

    def test_base_to_other(self):
        assert convert(100, "DKK", "EUR") == 13.4
        assert convert(100, "DKK", "USD") == 14.6

    def test_other_to_base(self):
        assert convert(100, "EUR", "DKK") == 746.27

    def test_cross_rate_goes_through_base(self):
        # 100 / 0.134 * 0.146
        assert convert(100, "EUR", "USD") == 108.96

    def test_codes_are_case_insensitive(self):
        assert convert(100, "dkk", "eur") == 13.4

    def test_rounds_half_up_not_half_even(self):
        rates = {"DKK": 1, "EUR": 0.5}
        assert convert(0.01, "DKK", "EUR", rates=rates) == 0.01
        assert convert(2.345, "DKK", "DKX", rates={"DKK": 1, "DKX": 1}) == 2.35

    def test_round_trip_returns_close_to_original(self):
        there = convert(100, "EUR", "DKK")
        assert abs(convert(there, "DKK", "EUR") - 100) <= 0.01

        there = convert(19.99, "USD", "DKK")
        assert abs(convert(there, "DKK", "USD") - 19.99) <= 0.01

    def test_unknown_currency_is_treated_as_base_currency(self, caplog):
        # lenient by choice: an unknown code converts at rate 1 and is logged
        with caplog.at_level("WARNING", logger="mrrboard.currency"):
            assert convert(100, "GBP", "DKK") == 100.0
        assert "GBP" in caplog.text

    def test_very_large_amounts_are_still_converted(self):
        assert convert(1e27, "DKK", "EUR") == 1.34e26
        big = Decimal("123456789012345678901234567890.10")
        assert convert(big, "DKK", "DKX", rates={"DKK": 1, "DKX": 1}) == float(big)

    def test_unusable_amount_is_passed_through(self):
        assert convert("n/a", "DKK", "EUR") == "n/a"
        assert convert(None, "DKK", "EUR") is None

    def test_static_table_is_read_only(self):
        with pytest.raises(TypeError):
            EXCHANGE_RATES["EUR"] = 1  # type: ignore[index]


class TestFormatCurrency:

    def test_usd_with_grouping_and_decimals(self):
        assert format_currency(1234.5, "USD") == "$1,234.50"

    def test_eur_symbol(self):
        assert format_currency(99, "EUR") == "€99.00"

    def test_without_decimals_rounds_half_up(self):
        assert format_currency(1234.5, "USD", show_decimals=False) == "$1,235"

    def test_pre_rounds_half_up(self):
        assert format_currency(2.345, "USD") == "$2.35"

    def test_dkk_contains_amount(self):
        text = format_currency(1500, "DKK")
        assert "1,500.00" in text

    def test_unknown_currency_falls_back_to_code(self):
        assert format_currency(10, "XYZ") == "XYZ10.00"

    @pytest.mark.parametrize("amount, currency", [
        ("abc", "USD"),
        (None, "EUR"),
        (float("nan"), "DKK"),
        (10, None),
        (object(), "USD"),
    ])
    def test_never_raises(self, amount, currency):
        assert isinstance(format_currency(amount, currency), str)


class TestRateTable:

    def test_supported_currencies(self):
        assert get_supported_currencies() == ["DKK", "EUR", "USD"]

    def test_defaults_to_static_table(self):
        assert RateTable().convert(100, "DKK", "EUR") == 13.4

    def test_from_api_mapping(self):
        client = MagicMock()
        client.get_currency_rates.return_value = {"success": True, "data": {"rates": {"EUR": 0.2, "USD": "0.25"}}}

        table = RateTable.from_api(client)

        client.get_currency_rates.assert_called_once_with(base="DKK")
        assert table.rates["DKK"] == 1
        assert table.convert(100, "DKK", "EUR") == 20.0
        assert table.convert(100, "DKK", "USD") == 25.0

    def test_from_api_rows(self):
        client = MagicMock()
        client.get_currency_rates.return_value = {
            "success": True,
            "data": [
                {"from": "DKK", "to": "EUR", "rate": 0.2},
                {"from": "EUR", "to": "DKK", "rate": 5},
            ],
        }

        table = RateTable.from_api(client)

        assert table.rates == {"EUR": 0.2, "DKK": 1}

    def test_from_api_falls_back_on_error(self):
        client = MagicMock()
        client.get_currency_rates.side_effect = NetworkError("timed out")

        assert RateTable.from_api(client).rates == dict(EXCHANGE_RATES)

    def test_from_api_does_not_hide_an_expired_session(self):
        client = MagicMock()
        client.get_currency_rates.side_effect = UnauthorizedError(None, status_code=401)

        with pytest.raises(UnauthorizedError):
            RateTable.from_api(client)

    def test_from_api_falls_back_on_empty_data(self):
        client = MagicMock()
        client.get_currency_rates.return_value = {"success": True, "data": {}}

        assert RateTable.from_api(client).rates == dict(EXCHANGE_RATES)
