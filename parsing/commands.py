import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

HELP_PATTERN = re.compile(r"^ajuda$", re.IGNORECASE)
HISTORY_PATTERN = re.compile(r"^hist", re.IGNORECASE)
HISTORY_PREFIX = re.compile(r"^hist(?:[óo]rico)?", re.IGNORECASE)


class CommandKind(str, Enum):
    HELP = "help"
    HISTORY = "history"
    ENTRY = "entry"


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    argument: Optional[str] = None


def classify(body: str) -> Command:
    """Decide what an inbound text message asks for.

    HISTORY carries the optional client-name filter; ENTRY carries the
    trimmed text to hand to the extractor.
    """
    body = (body or "").strip()

    if HELP_PATTERN.match(body):
        return Command(CommandKind.HELP)

    if HISTORY_PATTERN.match(body):
        client_filter = HISTORY_PREFIX.sub("", body, count=1).strip()
        return Command(CommandKind.HISTORY, argument=client_filter or None)

    return Command(CommandKind.ENTRY, argument=body)
