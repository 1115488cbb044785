"""
Display-only currency conversion and formatting.

The revenue API is the system of record for exchange rates and normally
returns amounts already converted; the static table here covers the cases
where it has not. Nothing in this module raises: it sits on the render path
of every monetary value in the dashboard.
"""
from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from babel.numbers import format_currency as babel_format_currency
from babel.numbers import validate_currency

from mrrboard.errors import UnauthorizedError

logger = logging.getLogger(__name__)

BASE_CURRENCY = "DKK"
SUPPORTED_CURRENCIES = ("DKK", "EUR", "USD")

# Rates relative to DKK.
EXCHANGE_RATES: Mapping[str, float] = MappingProxyType({
    "DKK": 1,
    "EUR": 0.134,
    "USD": 0.146,
})

CURRENCY_SYMBOLS: Mapping[str, str] = MappingProxyType({
    "DKK": "kr",
    "EUR": "€",
    "USD": "$",
})

CURRENCY_LABELS: Mapping[str, Dict[str, str]] = MappingProxyType({
    "DKK": {"label": "Danish Krone", "symbol": "kr"},
    "EUR": {"label": "Euro", "symbol": "€"},
    "USD": {"label": "US Dollar", "symbol": "$"},
})

# enough digits for any amount a float can hold, down to the cent
_PRECISION = 350
_CENT = Decimal("0.01")
_UNIT = Decimal("1")


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise TypeError("bool is not an amount")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr-round-trip avoids dragging binary noise into the rounding step
        return Decimal(repr(value))
    return Decimal(str(value).strip())


def _rate(code: str, rates: Mapping[str, float]) -> Decimal:
    rate = rates.get(code)
    if not rate:
        logger.warning("Unknown currency %r; treating it as %s", code, BASE_CURRENCY)
        return _UNIT
    return _to_decimal(rate)


def convert(
    amount: Any,
    from_currency: str,
    to_currency: str,
    rates: Mapping[str, float] = EXCHANGE_RATES,
) -> Any:
    """
    Convert `amount` via the base currency, rounded half-up to 2 decimals.

    Same-currency conversion returns the input untouched. Unknown codes use a
    rate of 1; unusable amounts are passed through unchanged.
    """
    if from_currency == to_currency:
        return amount

    try:
        source = str(from_currency).upper()
        target = str(to_currency).upper()
        with localcontext() as ctx:
            ctx.prec = _PRECISION
            in_base = _to_decimal(amount) / _rate(source, rates)
            result = in_base * _rate(target, rates)
            return float(result.quantize(_CENT, rounding=ROUND_HALF_UP))
    except (InvalidOperation, TypeError, ValueError, ArithmeticError) as exc:
        logger.debug("convert(%r, %r, %r) passed through: %s", amount, from_currency, to_currency, exc)
        return amount


def _fallback_format(amount: Any, code: str, show_decimals: bool) -> str:
    symbol = CURRENCY_SYMBOLS.get(code) or code
    try:
        value = _to_decimal(amount)
        if show_decimals:
            text = str(value.quantize(_CENT, rounding=ROUND_HALF_UP))
        else:
            text = str(value.quantize(_UNIT, rounding=ROUND_HALF_UP))
    except (InvalidOperation, TypeError, ValueError, ArithmeticError):
        text = str(amount)
    return f"{symbol}{text}"


def format_currency(
    amount: Any,
    currency: str,
    show_decimals: bool = True,
    locale: str = "en_US",
) -> str:
    """
    Render `amount` for display, e.g. format_currency(1234.5, "USD") -> "$1,234.50".

    Falls back to a symbol lookup and plain digits when Babel rejects the
    currency code or the amount.
    """
    code = str(currency).upper() if currency is not None else ""
    try:
        validate_currency(code)
        value = _to_decimal(amount).quantize(
            _CENT if show_decimals else _UNIT, rounding=ROUND_HALF_UP
        )
        if show_decimals:
            return babel_format_currency(value, code, locale=locale)
        return babel_format_currency(
            value, code, format="¤#,##0", locale=locale, currency_digits=False
        )
    except Exception as exc:
        logger.debug("format_currency(%r, %r) using fallback: %s", amount, currency, exc)
        try:
            return _fallback_format(amount, code, show_decimals)
        except Exception:
            return str(amount)


def get_supported_currencies() -> List[str]:
    return list(SUPPORTED_CURRENCIES)


class RateTable:
    """
    Exchange rates relative to the base currency, optionally refreshed from
    the revenue API. Falls back to the static table when the API has nothing
    usable.
    """

    def __init__(self, rates: Optional[Mapping[str, float]] = None) -> None:
        self._rates: Mapping[str, float] = MappingProxyType(dict(rates or EXCHANGE_RATES))

    @property
    def rates(self) -> Mapping[str, float]:
        return self._rates

    def convert(self, amount: Any, from_currency: str, to_currency: str) -> Any:
        return convert(amount, from_currency, to_currency, rates=self._rates)

    @classmethod
    def from_api(cls, client) -> "RateTable":
        try:
            envelope = client.get_currency_rates(base=BASE_CURRENCY)
        except UnauthorizedError:
            raise
        except Exception as exc:
            logger.warning("Could not load exchange rates from API, using static table: %s", exc)
            return cls()

        parsed: Dict[str, float] = {}
        data = envelope.get("data")
        # either {"EUR": 0.134, ...} or [{"from": "DKK", "to": "EUR", "rate": 0.134}, ...]
        if isinstance(data, dict):
            items = data.get("rates", data)
            if isinstance(items, dict):
                for code, rate in items.items():
                    try:
                        parsed[str(code).upper()] = float(rate)
                    except (TypeError, ValueError):
                        continue
        elif isinstance(data, list):
            for row in data:
                if not isinstance(row, dict) or str(row.get("from", "")).upper() != BASE_CURRENCY:
                    continue
                try:
                    parsed[str(row.get("to", "")).upper()] = float(row.get("rate"))
                except (TypeError, ValueError):
                    continue

        parsed = {code: rate for code, rate in parsed.items() if code and rate > 0}
        if not parsed:
            logger.warning("Exchange rate response had no usable rates, using static table")
            return cls()
        parsed[BASE_CURRENCY] = 1
        return cls(parsed)
