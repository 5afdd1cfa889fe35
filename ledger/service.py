import sqlite3
from typing import Optional

import structlog

from .models import EntrySource, HistoryEntry
from .storage import LedgerDatabase, HISTORY_LIMIT

logger = structlog.get_logger(__name__)


class LedgerServiceError(Exception):
    pass


class StorageError(LedgerServiceError):
    pass


class LedgerService:
    def __init__(self, database: LedgerDatabase, history_limit: int = HISTORY_LIMIT):
        self.database = database
        self.history_limit = history_limit

    def resolve_or_create_client(self, owner_phone: str, name: str) -> int:
        try:
            client_id = self.database.find_client(owner_phone, name)
            if client_id is not None:
                return client_id

            try:
                client_id = self.database.insert_client(owner_phone, name)
                logger.info("client_created", owner_phone=owner_phone, client=name, client_id=client_id)
                return client_id
            except sqlite3.IntegrityError:
                # Lost the race against a concurrent insert for the same pair
                client_id = self.database.find_client(owner_phone, name)
                if client_id is None:
                    raise
                return client_id
        except sqlite3.Error as e:
            raise StorageError(f"Could not resolve client {name!r}: {e}") from e

    def append_entry(self, client_id: int, item: str, amount_cents: int,
                     source: EntrySource = EntrySource.TEXT, notes: Optional[str] = None) -> int:
        try:
            return self.database.insert_entry(client_id, item, amount_cents, EntrySource(source).value, notes)
        except sqlite3.Error as e:
            raise StorageError(f"Could not save entry for client {client_id}: {e}") from e

    def query_history(self, owner_phone: str, client_filter: Optional[str] = None) -> list[HistoryEntry]:
        try:
            rows = self.database.history(owner_phone, client_filter or None, self.history_limit)
        except sqlite3.Error as e:
            raise StorageError(f"Could not read history for {owner_phone}: {e}") from e
        return [HistoryEntry(**dict(row)) for row in rows]

    def record_entry(self, owner_phone: str, client: str, item: str, amount_cents: int,
                     source: EntrySource = EntrySource.TEXT) -> int:
        client_id = self.resolve_or_create_client(owner_phone, client)
        entry_id = self.append_entry(client_id, item, amount_cents, source)
        logger.info(
            "entry_saved",
            owner_phone=owner_phone, client=client, entry_id=entry_id,
            amount_cents=amount_cents, source=EntrySource(source).value,
        )
        return entry_id
