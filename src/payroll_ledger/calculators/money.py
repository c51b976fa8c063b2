"""Monetary parsing and rounding.

Spreadsheet exports carry amounts in the Spanish locale: ``.`` groups
thousands and ``,`` separates decimals ("1.234,56"). No currency symbol is
expected. Parsing is best effort: an unreadable cell becomes zero so that one
bad cell never aborts an import of hundreds of rows.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
CENTS = Decimal("0.01")
# Largest magnitude a payroll_row money column (Numeric(14, 2)) holds
MAX_AMOUNT = Decimal("999999999999.99")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places (cents)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def try_parse_money(raw: Any) -> tuple[Decimal, bool]:
    """Parse a monetary value, reporting whether the input was understood.

    Returns ``(amount, ok)``. Missing input (``None``, empty string) is
    ``(0, True)``: absence is not a parse failure. Text that cannot be read
    as a finite decimal is ``(0, False)``.
    """
    if raw is None:
        return ZERO, True

    if isinstance(raw, bool):
        return ZERO, False

    if isinstance(raw, Decimal):
        return (raw, True) if raw.is_finite() else (ZERO, False)

    if isinstance(raw, int):
        return Decimal(raw), True

    if isinstance(raw, float):
        value = Decimal(str(raw))
        return (value, True) if value.is_finite() else (ZERO, False)

    text = str(raw).strip()
    if not text:
        return ZERO, True

    # "1.234,56" -> "1234.56"; only the first comma becomes the decimal point
    normalized = text.replace(".", "").replace(",", ".", 1)
    try:
        value = Decimal(normalized)
    except InvalidOperation:
        return ZERO, False

    if not value.is_finite():
        return ZERO, False
    return value, True


def parse_money(raw: Any) -> Decimal:
    """Parse a monetary value; unparseable or empty input yields ``0``."""
    value, _ = try_parse_money(raw)
    return value


def parse_amount(raw: Any) -> tuple[Decimal, bool]:
    """Parse a cell into a storable amount: rounded to cents, within range.

    Amounts beyond ``MAX_AMOUNT`` are reported like unparseable text,
    ``(0, False)``, so one oversized cell cannot abort a batch write.
    """
    value, ok = try_parse_money(raw)
    if not ok:
        return ZERO, False
    value = round_to_cents(value)
    if abs(value) > MAX_AMOUNT:
        return ZERO, False
    return value, True
