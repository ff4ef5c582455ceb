import json
import threading
from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from backend.db import make_session_factory
from backend.extraction import parse_extracted_data
from backend.store import SqlDocumentStore

from conftest import SAMPLE_EXTRACTION


def sample_data():
    return parse_extracted_data(json.dumps(SAMPLE_EXTRACTION))


class StepClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 9, 15)

    def __call__(self):
        self.now += timedelta(days=1)
        return self.now


def test_summaries_are_scoped_per_user_and_newest_first(engine):
    store = SqlDocumentStore(make_session_factory(engine), clock=StepClock())
    first = store.save_contract_note("u1", sample_data(), "a.pdf")
    second = store.save_contract_note("u1", sample_data(), "b.pdf")
    store.save_contract_note("u2", sample_data(), "c.pdf")

    assert [s.id for s in store.list_summaries("u1")] == [second, first]
    assert [s.file_name for s in store.list_summaries("u2")] == ["c.pdf"]
    assert store.list_summaries("nobody") == []
    assert len(store.list_trades("u1")) == 2


def test_subscribe_delivers_current_snapshot_immediately(store):
    store.save_contract_note("u1", sample_data(), "a.pdf")
    snapshots = []
    store.subscribe_summaries("u1", snapshots.append)
    assert len(snapshots) == 1
    assert snapshots[0][0].file_name == "a.pdf"


def test_unsubscribe_stops_updates_and_is_idempotent(store):
    snapshots = []
    unsubscribe = store.subscribe_summaries("u1", snapshots.append)
    unsubscribe()
    unsubscribe()
    store.save_contract_note("u1", sample_data(), "a.pdf")
    assert len(snapshots) == 1


def test_other_users_writes_do_not_notify(store):
    snapshots = []
    store.subscribe_summaries("u1", snapshots.append)
    store.save_contract_note("u2", sample_data(), "a.pdf")
    assert len(snapshots) == 1


def test_failing_subscriber_does_not_block_others(store):
    def broken(_):
        if calls:
            raise RuntimeError("listener gone")
        calls.append(1)

    calls = []
    snapshots = []
    store.subscribe_summaries("u1", broken)
    store.subscribe_summaries("u1", snapshots.append)

    note_id = store.save_contract_note("u1", sample_data(), "a.pdf")

    assert [s.id for s in snapshots[-1]] == [note_id]


class RacingStore(SqlDocumentStore):
    """Commits a note from another thread while the first snapshot is being read."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.writer = None

    def list_summaries(self, user_id):
        snapshot = super().list_summaries(user_id)
        if self.writer is None:
            self.writer = threading.Thread(
                target=self.save_contract_note, args=(user_id, sample_data(), "late.pdf")
            )
            self.writer.start()
            self.writer.join(timeout=0.5)
        return snapshot


def test_first_snapshot_is_delivered_before_concurrent_updates(engine):
    store = RacingStore(make_session_factory(engine))
    snapshots = []

    store.subscribe_summaries("u1", snapshots.append)
    store.writer.join()

    assert [len(s) for s in snapshots] == [0, 1]


def test_refresh_failure_after_commit_is_logged_not_raised(store, caplog):
    snapshots = []
    store.subscribe_summaries("u1", snapshots.append)

    def broken_read(user_id):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    store.list_summaries = broken_read
    note_id = store.save_contract_note("u1", sample_data(), "a.pdf")

    assert note_id
    assert len(snapshots) == 1
    assert "Could not refresh summaries" in caplog.text
