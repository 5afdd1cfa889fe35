import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

_NOT_NUMERIC = re.compile(r"[^0-9,.]")
_LEADING_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def normalize_amount(raw: Optional[str]) -> Optional[int]:
    """Convert a money fragment like "R$ 45,90" into integer cents.

    Only the leading number survives, so grouped values such as "1.200,50"
    collapse to 1.2 (120 cents); grouping separators are not interpreted.
    """
    if not raw:
        return None

    cleaned = _NOT_NUMERIC.sub("", str(raw).lower()).replace(",", ".", 1)
    match = _LEADING_NUMBER.match(cleaned)
    if not match:
        return None

    cents = (Decimal(match.group()) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def format_amount(amount_cents: int) -> str:
    return f"R$ {Decimal(amount_cents) / 100:.2f}"
