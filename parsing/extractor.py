import re
from dataclasses import dataclass
from typing import Optional

from .amount import normalize_amount

# Priority order: the first one present in the text is the only one used.
SEPARATORS = ("—", ";", "-")

_NUMERIC_TOKEN = re.compile(r"\d+[.,]?\d*")
_FALLBACK_SPLIT = re.compile(r"[;,\-—]")


@dataclass(frozen=True)
class ParsedEntry:
    client: str
    item: str
    amount_cents: int


def extract_entry(text: Optional[str]) -> Optional[ParsedEntry]:
    """Parse "Cliente — serviço — valor" style utterances.

    Tries the explicit separator first, then falls back to locating the
    first number in the text. Returns None when neither works.
    """
    if not text:
        return None
    return _split_on_separator(text) or _locate_amount(text)


def _split_on_separator(text: str) -> Optional[ParsedEntry]:
    sep = next((s for s in SEPARATORS if s in text), None)
    if sep is None:
        return None

    first, last = text.index(sep), text.rindex(sep)
    client = text[:first].strip()
    item = text[first + len(sep):last].strip() if last > first else ""
    amount_cents = normalize_amount(text[last + len(sep):].strip())

    if client and item and amount_cents is not None:
        return ParsedEntry(client=client, item=item, amount_cents=amount_cents)
    return None


def _locate_amount(text: str) -> Optional[ParsedEntry]:
    match = _NUMERIC_TOKEN.search(text)
    if not match:
        return None

    amount_cents = normalize_amount(match.group())
    remainder = text[:match.start()] + text[match.end():]

    parts = [p.strip() for p in _FALLBACK_SPLIT.split(remainder) if p.strip()]
    if len(parts) == 1:
        # "Carlos revisão 80": no separators left, fall back to words
        parts = parts[0].split(None, 1)

    if len(parts) >= 2 and amount_cents is not None:
        return ParsedEntry(client=parts[0], item=" ".join(parts[1:]), amount_cents=amount_cents)
    return None
