from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class EntrySource(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class Entry(BaseModel):
    id: int
    client_id: int
    item: str
    amount_cents: int = Field(..., ge=0, description="Amount in integer cents")
    date: datetime
    notes: Optional[str] = None
    source: EntrySource = EntrySource.TEXT

    model_config = ConfigDict(from_attributes=True)


class HistoryEntry(Entry):
    client: str = Field(..., description="Display name of the owning client")
