from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

# Keep the list explicit and easy to update as the merchant's markets change.
SUPPORTED_CURRENCIES: tuple[str, ...] = (
    "USD",
    "EUR",
    "GBP",
    "JOD",
    "AED",
    "SAR",
    "QAR",
    "EGP",
)

CENT = Decimal("0.01")
MAX_AMOUNT_DIGITS = 15


def normalize_currency(value: Any) -> str:
    return str(value or "").strip().upper()


def is_supported_currency(value: Any) -> bool:
    return normalize_currency(value) in SUPPORTED_CURRENCIES


def parse_amount(value: Any) -> Decimal | None:
    """Parse a wire amount into a finite Decimal, or None when it is not one."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def has_cent_precision(amount: Decimal) -> bool:
    try:
        return amount == amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return False


def format_amount(amount: Decimal) -> str:
    """Two-decimal string used for `total` and as the signed amount field."""
    return str(amount.quantize(CENT, rounding=ROUND_HALF_UP))
