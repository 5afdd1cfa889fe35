"""
Message Parsing Package

Turns free-form WhatsApp text into structured data:
- amount normalization to integer cents
- ledger entry extraction (delimiter strategy + fallback heuristic)
- command classification (help, history, entry)
"""

from .amount import normalize_amount, format_amount
from .extractor import ParsedEntry, extract_entry
from .commands import Command, CommandKind, classify

__all__ = [
    "normalize_amount",
    "format_amount",
    "ParsedEntry",
    "extract_entry",
    "Command",
    "CommandKind",
    "classify",
]
