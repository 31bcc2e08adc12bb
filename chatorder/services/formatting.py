from __future__ import annotations

from chatorder.core.config import DEFAULT_CURRENCY_SYMBOL


def format_number(value: float | int | None) -> str:
    if value is None:
        return ""
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return f"{number:.2f}".rstrip("0").rstrip(".")


def format_amount(value: float | int | None, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    return f"{symbol}{format_number(value or 0)}"
