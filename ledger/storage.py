"""
SQLite Ledger Repository
========================

Two tables, scoped by the owner's phone number:
- clients: UNIQUE(name, owner_phone), so a tenant never gets two clients
  with the same name, even when two messages race to create it
- entries: immutable rows pointing at their client
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, List, Optional

import structlog

logger = structlog.get_logger(__name__)

DATABASE_FILE = "data.db"
HISTORY_LIMIT = 50


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerDatabase:
    """
    SQLite storage for clients and entries.

    Every call opens its own connection, so the same instance can be used
    from the thread pool that runs blocking work for the web app.

    Usage:
        db = LedgerDatabase("data.db")
        db.init()

        client_id = db.find_client("5511999990000", "João")
        rows = db.history("5511999990000", client_filter="jo")
    """

    def __init__(self, db_path: str = DATABASE_FILE, clock: Callable[[], datetime] = utcnow):
        self.db_path = db_path
        self.clock = clock

    @contextmanager
    def _get_connection(self):
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        conn.create_function("casefold", 1, lambda s: s.casefold() if s is not None else None,
                             deterministic=True)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init(self):
        """Create tables if they do not exist yet."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS clients (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    owner_phone TEXT NOT NULL,
                    UNIQUE(name, owner_phone)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    client_id INTEGER NOT NULL,
                    item TEXT NOT NULL,
                    amount_cents INTEGER NOT NULL CHECK (amount_cents >= 0),
                    date TEXT NOT NULL,
                    notes TEXT,
                    source TEXT,
                    FOREIGN KEY(client_id) REFERENCES clients(id)
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_entries_date ON entries(date)")

        logger.info("database_initialized", path=self.db_path)

    # ── Clients ────────────────────────────────────────────────────

    def find_client(self, owner_phone: str, name: str) -> Optional[int]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id FROM clients WHERE owner_phone = ? AND name = ?",
                (owner_phone, name)
            ).fetchone()
            return row["id"] if row else None

    def insert_client(self, owner_phone: str, name: str) -> int:
        """Insert a client. Raises sqlite3.IntegrityError if it already exists."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "INSERT INTO clients (name, owner_phone) VALUES (?, ?)",
                (name, owner_phone)
            )
            return cursor.lastrowid

    def count_clients(self, owner_phone: str) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM clients WHERE owner_phone = ?", (owner_phone,)
            ).fetchone()[0]

    # ── Entries ────────────────────────────────────────────────────

    def insert_entry(self, client_id: int, item: str, amount_cents: int,
                     source: str = "text", notes: Optional[str] = None) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """INSERT INTO entries (client_id, item, amount_cents, date, notes, source)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (client_id, item, amount_cents, self.clock().isoformat(timespec="microseconds"), notes, source)
            )
            return cursor.lastrowid

    def history(self, owner_phone: str, client_filter: Optional[str] = None,
                limit: int = HISTORY_LIMIT) -> List[sqlite3.Row]:
        """Entries of a tenant joined with the client name, newest first."""
        sql = """
            SELECT e.*, c.name AS client
            FROM entries e
            JOIN clients c ON c.id = e.client_id
            WHERE c.owner_phone = ?"""
        params: list = [owner_phone]

        if client_filter:
            sql += " AND instr(casefold(c.name), ?) > 0"
            params.append(client_filter.casefold())

        sql += " ORDER BY e.date DESC, e.id DESC LIMIT ?"
        params.append(limit)

        with self._get_connection() as conn:
            return conn.execute(sql, params).fetchall()
