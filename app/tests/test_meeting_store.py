import pytest
from types import SimpleNamespace
from datetime import date, datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.data.archive_store import ArchiveStore
from app.data.meeting_manager import MeetingManager
import app.data.meeting_store as meeting_store_module
from app.data.meeting_store import MeetingStore
from app.database import Base
from app.exceptions import ConflictError, NotFoundError
from app.models.meeting import Meeting
from app.models.user import User
from app.utils.identifiers import generate_meeting_id, meeting_id_prefix

CREATED_AT = datetime(2025, 11, 4, 8, 0, tzinfo=timezone.utc)


def _meeting(creator_id: str, title: str = "Committee sync") -> Meeting:
    return Meeting(
        title=title,
        type="committee",
        date=date(2025, 11, 6),
        start_time="14:00",
        end_time="15:00",
        venue="Room 101",
        chairperson_id=creator_id,
        created_by=creator_id,
        attendees=[],
        agenda=[],
        questions=[],
        reminders=[],
        tags=[],
        previous_versions=[],
        status="scheduled",
    )


@pytest.fixture
def creator(make_user) -> User:
    return make_user("creator", "Neha", "Joshi")


@pytest.fixture
def file_engine(tmp_path):
    """A file database so that two sessions hold independent connections."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'council.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


def test_insert_retries_when_candidate_id_was_taken(db_session, creator, monkeypatch):
    store = MeetingStore(db_session)
    first = store.insert(_meeting(creator.user_id), created_at=CREATED_AT)
    assert first.meeting_id == "SC-2025-11-04-001"

    # Simulate a creator that computed its candidate before `first` committed.
    stale = iter(["SC-2025-11-04-001"])

    def racing_generate(db, created_at=None):
        candidate = next(stale, None)
        return candidate or generate_meeting_id(db, created_at)

    monkeypatch.setattr(meeting_store_module, "generate_meeting_id", racing_generate)

    second = store.insert(_meeting(creator.user_id), created_at=CREATED_AT)
    assert second.meeting_id == "SC-2025-11-04-002"
    assert db_session.query(Meeting).count() == 2


def test_simulated_concurrent_creators_get_unique_ids(db_session, creator, monkeypatch):
    store = MeetingStore(db_session, id_retry_attempts=10)
    # Every creator first proposes the candidate it read before anyone committed.
    pending_stale = {"count": 5}

    def racing_generate(db, created_at=None):
        if pending_stale["count"] and db.query(Meeting).count():
            pending_stale["count"] -= 1
            return f"{meeting_id_prefix(created_at)}-001"
        return generate_meeting_id(db, created_at)

    monkeypatch.setattr(meeting_store_module, "generate_meeting_id", racing_generate)

    ids = [
        store.insert(_meeting(creator.user_id, f"Meeting {n}"), created_at=CREATED_AT).meeting_id
        for n in range(5)
    ]

    assert ids == [f"SC-2025-11-04-{n:03d}" for n in range(1, 6)]
    assert len(set(ids)) == 5


def test_naive_count_based_ids_collide(db_session, creator):
    """Two writers that both count existing rows before either commits pick the same id."""

    def naive_id(db):
        prefix = meeting_id_prefix(CREATED_AT)
        count = db.query(Meeting).filter(Meeting.meeting_id.like(f"{prefix}-%")).count()
        return f"{prefix}-{count + 1:03d}"

    first_candidate = naive_id(db_session)
    second_candidate = naive_id(db_session)
    assert first_candidate == second_candidate

    first = _meeting(creator.user_id)
    first.meeting_id = first_candidate
    db_session.add(first)
    db_session.commit()

    second = _meeting(creator.user_id)
    second.meeting_id = second_candidate
    db_session.add(second)
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_insert_gives_up_after_retry_budget(db_session, creator, monkeypatch):
    store = MeetingStore(db_session, id_retry_attempts=2)
    store.insert(_meeting(creator.user_id), created_at=CREATED_AT)
    monkeypatch.setattr(
        meeting_store_module,
        "generate_meeting_id",
        lambda db, created_at=None: "SC-2025-11-04-001",
    )

    with pytest.raises(ConflictError):
        store.insert(_meeting(creator.user_id), created_at=CREATED_AT)


def test_update_reapplies_mutation_after_concurrent_write(file_engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    setup = Session()
    user = User(user_id="USR-JOSHIXN-001", login="creator", hashed_password="x")
    setup.add(user)
    setup.commit()
    meeting = MeetingStore(setup).insert(_meeting(user.user_id), created_at=CREATED_AT)
    record_id = meeting.id
    setup.close()

    writer_a = Session()
    writer_b = Session()
    calls = {"count": 0}

    def rename(target: Meeting) -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            # Another writer commits between our read and our write.
            MeetingStore(writer_b).update_by_id(
                record_id, lambda other: setattr(other, "venue", "Auditorium"), "USR-B"
            )
        target.title = "Renamed"

    try:
        updated = MeetingStore(writer_a).update_by_id(record_id, rename, "USR-A")

        assert calls["count"] == 2
        assert updated.version == 3
        assert updated.title == "Renamed"
        assert updated.venue == "Auditorium"
        history = updated.previous_versions
        assert [entry["version"] for entry in history] == [1, 2]
        assert history[1]["data"]["venue"] == "Auditorium"
        assert history[1]["data"]["title"] == "Committee sync"
    finally:
        writer_a.close()
        writer_b.close()


def test_update_without_changes_keeps_version(db_session, creator):
    store = MeetingStore(db_session)
    meeting = store.insert(_meeting(creator.user_id), created_at=CREATED_AT)

    unchanged = store.update_by_id(
        meeting.id, lambda m: setattr(m, "title", "Committee sync"), creator.user_id
    )

    assert unchanged.version == 1
    assert unchanged.previous_versions == []


def test_update_missing_meeting_raises(db_session):
    with pytest.raises(NotFoundError):
        MeetingStore(db_session).update_by_id("missing", lambda m: None)


def test_find_filters_and_counts(db_session, creator):
    store = MeetingStore(db_session)
    first = store.insert(_meeting(creator.user_id, "Alpha"), created_at=CREATED_AT)
    second = _meeting(creator.user_id, "Beta")
    second.type = "special"
    second.date = date(2025, 12, 1)
    store.insert(second, created_at=CREATED_AT)

    assert store.count() == 2
    assert [m.title for m in store.find(type="special")] == ["Beta"]
    assert [m.title for m in store.find(date_to=date(2025, 11, 30))] == ["Alpha"]
    assert [m.title for m in store.find(order_by=("title",))] == ["Alpha", "Beta"]
    assert store.count_by("type") == {"committee": 1, "special": 1}
    assert store.find_by_meeting_id(first.meeting_id).id == first.id
    assert store.delete_by_id(first.id) is True
    assert store.delete_by_id(first.id) is False

    with pytest.raises(ValueError):
        store.find(order_by=("venue",))


def test_delete_archives_the_latest_committed_state(file_engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    setup = Session()
    user = User(user_id="USR-JOSHIXN-001", login="creator", hashed_password="x")
    setup.add(user)
    setup.commit()
    record_id = MeetingStore(setup).insert(_meeting(user.user_id), created_at=CREATED_AT).id
    setup.close()

    deleter = Session()
    editor = Session()
    try:
        manager = MeetingManager(db=deleter, archive_store=ArchiveStore(deleter, retention_days=30))
        # The deleter already holds the meeting at version 1.
        assert manager.get_meeting(record_id).title == "Committee sync"

        MeetingStore(editor).update_by_id(
            record_id, lambda other: setattr(other, "title", "Renamed elsewhere"), "USR-B"
        )

        actor = SimpleNamespace(user_id="USR-CTRL", is_privileged=True)
        archive_id = manager.delete_meeting(record_id, actor)

        record = manager.archive_store.get(archive_id)
        assert record.original_data["title"] == "Renamed elsewhere"
        assert record.original_data["version"] == 2
        assert record.archive_metadata["version"] == 2
        assert deleter.query(Meeting).filter(Meeting.id == record_id).count() == 0
    finally:
        deleter.close()
        editor.close()


def test_delete_refuses_a_moved_version(db_session, creator):
    store = MeetingStore(db_session)
    meeting = store.insert(_meeting(creator.user_id), created_at=CREATED_AT)
    store.update_by_id(meeting.id, lambda m: setattr(m, "title", "Renamed"), creator.user_id)

    with pytest.raises(ConflictError):
        store.delete_by_id(meeting.id, expected_version=1)

    assert store.find_by_id(meeting.id).title == "Renamed"
    assert store.delete_by_id(meeting.id, expected_version=2) is True


def test_reinstate_keeps_original_keys_and_version(db_session, creator):
    store = MeetingStore(db_session)
    meeting = store.insert(_meeting(creator.user_id), created_at=CREATED_AT)
    for title in ("Second", "Third"):
        store.update_by_id(meeting.id, lambda m, t=title: setattr(m, "title", t), creator.user_id)
    snapshot = store.find_by_id(meeting.id).to_record(include_history=True)
    store.delete_by_id(meeting.id)

    reinstated = store.reinstate(Meeting.from_record(snapshot))

    assert reinstated.id == snapshot["id"]
    assert reinstated.meeting_id == "SC-2025-11-04-001"
    assert reinstated.version == 3
    assert reinstated.title == "Third"
    assert reinstated.date == date(2025, 11, 6)
    assert [entry["version"] for entry in reinstated.previous_versions] == [1, 2]

    with pytest.raises(ConflictError):
        clash = Meeting.from_record(dict(snapshot, id="another-id"))
        MeetingStore(db_session).reinstate(clash)
