"""
Unit Tests for the Ledger Service

Tests cover:
1. Idempotent client resolution
2. Duplicate-insert race recovery
3. Entry insertion
4. History ordering, filtering and tenant isolation
5. Storage failures
"""

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from ledger.models import EntrySource
from ledger.service import LedgerService, StorageError
from ledger.storage import LedgerDatabase


# Test constants
OWNER = "5511999990000"
OTHER_OWNER = "5521988887777"


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 10, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def database(tmp_path, clock):
    db = LedgerDatabase(str(tmp_path / "ledger.db"), clock=clock)
    db.init()
    return db


@pytest.fixture
def service(database):
    return LedgerService(database)


class TestResolveOrCreateClient:
    """Tests for client resolution."""

    def test_creates_client(self, service, database):
        """A new name creates a client."""
        client_id = service.resolve_or_create_client(OWNER, "João")

        assert client_id is not None
        assert database.find_client(OWNER, "João") == client_id

    def test_idempotent(self, service, database):
        """Resolving the same name twice returns the same id."""
        first = service.resolve_or_create_client(OWNER, "João")
        second = service.resolve_or_create_client(OWNER, "João")

        assert first == second
        assert database.count_clients(OWNER) == 1

    def test_name_match_is_case_sensitive(self, service, database):
        """Names differing only in case are different clients."""
        upper = service.resolve_or_create_client(OWNER, "João")
        lower = service.resolve_or_create_client(OWNER, "joão")

        assert upper != lower
        assert database.count_clients(OWNER) == 2

    def test_same_name_different_tenants(self, service):
        """Each phone number has its own clients."""
        mine = service.resolve_or_create_client(OWNER, "Maria")
        theirs = service.resolve_or_create_client(OTHER_OWNER, "Maria")

        assert mine != theirs

    def test_recovers_from_concurrent_insert(self, service, database, monkeypatch):
        """A racing insert wins; the loser re-reads instead of failing."""
        winner_id = database.insert_client(OWNER, "Carlos")

        lookups = []
        real_find = database.find_client

        def stale_find(owner_phone, name):
            lookups.append(name)
            # first lookup happens "before" the other message committed
            return None if len(lookups) == 1 else real_find(owner_phone, name)

        monkeypatch.setattr(database, "find_client", stale_find)

        assert service.resolve_or_create_client(OWNER, "Carlos") == winner_id
        assert len(lookups) == 2
        assert database.count_clients(OWNER) == 1

    def test_unique_constraint_enforced_by_storage(self, database):
        """A duplicate insert is refused by the table itself."""
        database.insert_client(OWNER, "Carlos")

        with pytest.raises(sqlite3.IntegrityError):
            database.insert_client(OWNER, "Carlos")


class TestAppendEntry:
    """Tests for entry insertion."""

    def test_entry_is_stamped_by_store(self, service, clock):
        """The store assigns the UTC date."""
        client_id = service.resolve_or_create_client(OWNER, "João")
        entry_id = service.append_entry(client_id, "troca de óleo", 12000, EntrySource.TEXT)

        history = service.query_history(OWNER)

        assert len(history) == 1
        entry = history[0]
        assert entry.id == entry_id
        assert entry.client == "João"
        assert entry.item == "troca de óleo"
        assert entry.amount_cents == 12000
        assert entry.source == EntrySource.TEXT
        assert entry.date == clock.now
        assert entry.notes is None

    def test_audio_source(self, service):
        """Voice entries keep the audio source."""
        client_id = service.resolve_or_create_client(OWNER, "Ana")
        service.append_entry(client_id, "corte", 5000, "audio")

        assert service.query_history(OWNER)[0].source == EntrySource.AUDIO

    def test_record_entry_creates_client_once(self, service, database):
        """Recording twice for a client reuses it."""
        service.record_entry(OWNER, "Maria", "pintura", 4590)
        service.record_entry(OWNER, "Maria", "retoque", 1500)

        assert database.count_clients(OWNER) == 1
        assert len(service.query_history(OWNER)) == 2

    def test_unknown_client_is_rejected(self, service):
        """An entry for a missing client is a storage error."""
        with pytest.raises(StorageError):
            service.append_entry(9999, "nada", 100)


class TestQueryHistory:
    """Tests for history retrieval."""

    def test_empty_history(self, service):
        """No entries gives an empty list."""
        assert service.query_history(OWNER) == []

    def test_newest_first(self, service, clock):
        """History is ordered newest first."""
        service.record_entry(OWNER, "A", "t1", 100)
        clock.advance(minutes=1)
        service.record_entry(OWNER, "B", "t2", 200)
        clock.advance(minutes=1)
        service.record_entry(OWNER, "C", "t3", 300)

        items = [e.item for e in service.query_history(OWNER)]
        assert items == ["t3", "t2", "t1"]

    def test_same_timestamp_falls_back_to_insertion_order(self, service):
        """Equal dates are ordered by id, newest first."""
        service.record_entry(OWNER, "A", "first", 100)
        service.record_entry(OWNER, "A", "second", 100)

        items = [e.item for e in service.query_history(OWNER)]
        assert items == ["second", "first"]

    def test_filter_is_partial_and_case_insensitive(self, service):
        """The filter matches any part of the name, in any case."""
        service.record_entry(OWNER, "João", "óleo", 12000)
        service.record_entry(OWNER, "Jorge", "pneu", 30000)
        service.record_entry(OWNER, "Maria", "pintura", 4590)

        clients = {e.client for e in service.query_history(OWNER, "jo")}
        assert clients == {"João", "Jorge"}

        assert [e.client for e in service.query_history(OWNER, "JOÃO")] == ["João"]

    def test_filter_without_match(self, service):
        """A filter matching nobody gives an empty list."""
        service.record_entry(OWNER, "Maria", "pintura", 4590)

        assert service.query_history(OWNER, "Jo") == []

    def test_filter_treats_wildcards_literally(self, service):
        """% and _ in the filter match only themselves."""
        service.record_entry(OWNER, "Maria", "pintura", 4590)

        assert service.query_history(OWNER, "%") == []
        assert service.query_history(OWNER, "_") == []

    def test_empty_filter_means_no_filter(self, service):
        """An empty filter lists everything."""
        service.record_entry(OWNER, "Maria", "pintura", 4590)

        assert len(service.query_history(OWNER, "")) == 1

    def test_tenants_are_isolated(self, service):
        """History never includes another tenant's entries."""
        service.record_entry(OWNER, "Maria", "pintura", 4590)
        service.record_entry(OTHER_OWNER, "Maria", "reboco", 9000)

        history = service.query_history(OWNER)
        assert [e.item for e in history] == ["pintura"]

    def test_capped_at_fifty(self, service, clock):
        """At most fifty entries are returned."""
        for i in range(55):
            service.record_entry(OWNER, "Maria", f"serviço {i}", 100)
            clock.advance(seconds=1)

        history = service.query_history(OWNER)
        assert len(history) == 50
        assert history[0].item == "serviço 54"

    def test_custom_limit(self, database):
        """The cap can be configured."""
        service = LedgerService(database, history_limit=2)
        for i in range(3):
            service.record_entry(OWNER, "Maria", f"serviço {i}", 100)

        assert len(service.query_history(OWNER)) == 2


class TestStorageFailures:
    """Storage errors surface as StorageError."""

    def test_missing_tables(self, tmp_path):
        """An uninitialised database raises StorageError."""
        service = LedgerService(LedgerDatabase(str(tmp_path / "empty.db")))

        with pytest.raises(StorageError):
            service.resolve_or_create_client(OWNER, "João")

        with pytest.raises(StorageError):
            service.query_history(OWNER)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
