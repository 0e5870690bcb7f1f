import pytest
from datetime import date, datetime, timezone
from sqlalchemy.orm import Session

from app.data.meeting_manager import MeetingManager
from app.data.member_manager import MemberManager
from app.exceptions import NotFoundError
from app.models.user import UserRole
from app.schemas.meeting import ActionItem, AttendeeInput, MeetingCreate, MinutesUpdate

CREATED_AT = datetime(2025, 11, 4, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def members(db_session: Session) -> MemberManager:
    manager = MemberManager()
    manager.set_db(db_session)
    return manager


@pytest.fixture
def meetings(db_session: Session) -> MeetingManager:
    return MeetingManager(db=db_session)


def _schedule(meetings, actor, meeting_date, attendees=(), title="General Body Meeting"):
    return meetings.create_meeting(
        MeetingCreate(
            title=title,
            type="regular",
            date=meeting_date,
            start_time="10:00",
            end_time="11:00",
            venue="Seminar Hall 2",
            chairperson_id=actor.user_id,
            attendees=list(attendees),
        ),
        actor,
        created_at=CREATED_AT,
    )


def test_attendance_lists_meetings_and_rate(members, meetings, secretary_user, member_user):
    _schedule(
        meetings,
        secretary_user,
        date(2025, 11, 10),
        [AttendeeInput(user_id=member_user.user_id, status="present")],
        title="November GBM",
    )
    _schedule(
        meetings,
        secretary_user,
        date(2025, 11, 20),
        [AttendeeInput(user_id=member_user.user_id, status="absent")],
        title="Fest review",
    )
    _schedule(meetings, secretary_user, date(2025, 12, 1), title="Without Kabir")

    result = members.get_attendance(member_user.user_id)

    assert [record["title"] for record in result["attendance"]] == [
        "Fest review",
        "November GBM",
    ]
    assert result["attendance"][1]["status"] == "present"
    assert result["attendance"][1]["time"] == "10:00"
    assert result["statistics"] == {
        "total_meetings": 2,
        "present_count": 1,
        "absent_count": 1,
        "attendance_rate": 50.0,
    }

    later = members.get_attendance(member_user.user_id, start=date(2025, 11, 15))
    assert [record["title"] for record in later["attendance"]] == ["Fest review"]
    assert later["statistics"]["attendance_rate"] == 0.0


def test_attendance_for_member_without_meetings(members, member_user):
    result = members.get_attendance(member_user.user_id)

    assert result["attendance"] == []
    assert result["statistics"]["attendance_rate"] == 0.0


def test_unknown_member_raises(members):
    with pytest.raises(NotFoundError, match="Member not found"):
        members.get_attendance("USR-NOBODYX-001")
    with pytest.raises(NotFoundError):
        members.get_tasks("USR-NOBODYX-001")


def test_tasks_filter_by_status_and_keep_totals(
    members, meetings, secretary_user, member_user
):
    meeting = _schedule(meetings, secretary_user, date(2025, 11, 10))
    meetings.update_minutes(
        meeting.id,
        MinutesUpdate(
            summary="Budget approved.",
            action_items=[
                ActionItem(task="Book the venue", assignee_id=member_user.user_id),
                ActionItem(
                    task="Collect quotes",
                    assignee_id=member_user.user_id,
                    status="completed",
                ),
                ActionItem(task="Print posters", assignee_id=secretary_user.user_id),
                ActionItem(task="Email alumni", assignee_id=member_user.user_id),
                ActionItem(task="Draft budget", assignee_id=member_user.user_id),
            ],
        ),
        secretary_user,
    )

    everything = members.get_tasks(member_user.user_id)
    assert [task["task"] for task in everything["tasks"]] == [
        "Book the venue",
        "Collect quotes",
        "Email alumni",
        "Draft budget",
    ]
    assert everything["tasks"][0]["meeting_id"] == meeting.meeting_id
    assert everything["tasks"][0]["action_item_id"] == f"{meeting.meeting_id}-ACT-001"
    assert everything["statistics"] == {
        "total_tasks": 4,
        "completed_tasks": 1,
        "pending_tasks": 3,
        "completion_rate": 25.0,
    }

    completed = members.get_tasks(member_user.user_id, status="completed")
    assert [task["task"] for task in completed["tasks"]] == ["Collect quotes"]
    assert completed["statistics"] == everything["statistics"]


def test_top_performers_rank_by_tasks_then_attendance(db_session, members, make_user):
    alice = make_user("alice", "Alice", "Dsouza")
    bob = make_user("bob", "Bob", "Kulkarni")
    carol = make_user("carol", "Carol", "Nair")
    dormant = make_user("dormant", "Dev", "Iyer")
    alice.tasks_completed, alice.meetings_attended = 3, 1
    bob.tasks_completed, bob.meetings_attended = 3, 4
    carol.tasks_completed, carol.meetings_attended = 1, 9
    dormant.tasks_completed, dormant.is_active = 10, False
    db_session.commit()

    ranked = members.get_top_performers(limit=2)

    assert [(entry["rank"], entry["user_id"]) for entry in ranked] == [
        (1, bob.user_id),
        (2, alice.user_id),
    ]
    assert ranked[0]["name"] == "Bob Kulkarni"
    assert ranked[0]["meetings_attended"] == 4
    assert ranked[0]["tasks_completed"] == 3


def test_statistics_cover_active_members(db_session, members, make_user):
    make_user("alice", "Alice", "Dsouza").meetings_attended = 4
    make_user("bob", "Bob", "Kulkarni", role=UserRole.SECRETARY).tasks_completed = 3
    inactive = make_user("carol", "Carol", "Nair")
    inactive.is_active = False
    db_session.commit()

    stats = members.get_statistics()

    assert stats["total_members"] == 2
    assert stats["by_role"] == {"member": 1, "secretary": 1}
    assert stats["average_meetings_attended"] == 2.0
    assert stats["average_tasks_completed"] == 1.5
    assert {m["name"] for m in stats["recent_members"]} == {"Alice Dsouza", "Bob Kulkarni"}
