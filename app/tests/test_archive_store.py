from datetime import datetime, timedelta, timezone

import pytest

from app.data.archive_store import ArchiveStore, snapshot_size
from app.exceptions import InvalidStateError, NotFoundError
from app.models.archive import ArchiveRecord

SNAPSHOT = {
    "id": "abc123",
    "meeting_id": "SC-2025-11-04-001",
    "title": "General Body Meeting",
    "type": "regular",
    "venue": "Seminar Hall 2",
    "date": "2025-11-10",
    "objective": None,
}


def test_write_records_snapshot_and_retention(db_session):
    store = ArchiveStore(db_session, retention_days=30)
    archived_at = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)

    archive_id = store.write(
        item_id="abc123",
        item_type="meeting",
        snapshot=SNAPSHOT,
        archived_by="USR-RAOXXXC-001",
        metadata={"version": 4, "original_collection": "meetings"},
        archived_at=archived_at,
    )

    record = store.get(archive_id)
    assert record.item_id == "abc123"
    assert record.reason == "Manual deletion by controller"
    assert record.original_data == SNAPSHOT
    assert record.retention_days == 30
    assert record.scheduled_for_deletion.replace(tzinfo=timezone.utc) == archived_at + timedelta(days=30)
    assert record.archive_metadata == {
        "size": snapshot_size(SNAPSHOT),
        "version": 4,
        "original_collection": "meetings",
    }
    assert record.search_index == {
        "title": "General Body Meeting",
        "type": "regular",
        "venue": "Seminar Hall 2",
        "date": "2025-11-10",
    }
    assert record.restored is False
    assert [r.archive_id for r in store.list_for_item("abc123")] == [archive_id]


def test_purge_expired_keeps_recent_and_restored(db_session):
    store = ArchiveStore(db_session, retention_days=10)
    old = datetime(2025, 1, 1, tzinfo=timezone.utc)
    recent = datetime(2025, 11, 1, tzinfo=timezone.utc)

    expired_id = store.write("m1", "meeting", SNAPSHOT, "USR-1", archived_at=old)
    kept_id = store.write("m2", "meeting", SNAPSHOT, "USR-1", archived_at=recent)
    restored_id = store.write("m3", "meeting", SNAPSHOT, "USR-1", archived_at=old)
    store.mark_restored(restored_id, "USR-2")

    purged = store.purge_expired(now=datetime(2025, 11, 5, tzinfo=timezone.utc))

    assert purged == 1
    remaining = {r.archive_id for r in db_session.query(ArchiveRecord).all()}
    assert remaining == {kept_id, restored_id}
    assert expired_id not in remaining
    assert store.purge_expired(now=datetime(2025, 11, 5, tzinfo=timezone.utc)) == 0


def test_mark_restored_records_actor_once(db_session):
    store = ArchiveStore(db_session, retention_days=30)
    archive_id = store.write("m1", "meeting", SNAPSHOT, "USR-1")
    restored_at = datetime(2025, 11, 6, 9, 0, tzinfo=timezone.utc)

    record = store.mark_restored(archive_id, "USR-RAOXXXC-001", restored_at=restored_at)

    assert record.restored is True
    assert record.restored_by == "USR-RAOXXXC-001"
    assert record.restored_at.replace(tzinfo=timezone.utc) == restored_at
    with pytest.raises(InvalidStateError):
        store.mark_restored(archive_id, "USR-RAOXXXC-001")
    with pytest.raises(NotFoundError):
        store.mark_restored("ARC-missing", "USR-RAOXXXC-001")


def test_statistics_summarise_archive(db_session):
    store = ArchiveStore(db_session, retention_days=10)
    first = store.write(
        "m1", "meeting", SNAPSHOT, "USR-1",
        archived_at=datetime(2025, 9, 20, tzinfo=timezone.utc),
    )
    store.write(
        "m2", "meeting", SNAPSHOT, "USR-1",
        archived_at=datetime(2025, 10, 30, tzinfo=timezone.utc),
    )
    store.write(
        "n1", "notice", {"title": "Notice"}, "USR-1",
        archived_at=datetime(2025, 10, 31, tzinfo=timezone.utc),
    )
    store.mark_restored(first, "USR-2")

    stats = store.statistics(now=datetime(2025, 11, 9, 12, tzinfo=timezone.utc))

    assert stats["total"] == 3
    assert stats["by_type"] == {"meeting": 2, "notice": 1}
    assert stats["restored"] == 1
    assert stats["monthly"] == [
        {"month": "2025-10", "count": 2},
        {"month": "2025-09", "count": 1},
    ]
    assert stats["storage_bytes"] == 2 * snapshot_size(SNAPSHOT) + snapshot_size(
        {"title": "Notice"}
    )
    # Only the unrestored October meeting has passed its deletion date.
    assert stats["pending_deletion"] == 1
