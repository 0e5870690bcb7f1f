"""
Read side of member performance: attendance history, assigned action items
and the counters kept by the performance tracker.
"""

from datetime import date
import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import NotFoundError
from ..models.user import User
from ..schemas.meeting import ActionItemStatus, AttendanceStatus
from .meeting_store import MeetingStore

logger = logging.getLogger(__name__)

TOP_PERFORMER_LIMIT = 5
RECENT_MEMBER_LIMIT = 5


def _rate(part: int, whole: int) -> float:
    return round(part * 100 / whole, 1) if whole else 0.0


class MemberManager:
    """Attendance, task and ranking queries for council members."""

    def __init__(self):
        self.db = None
        self.store = None

    def set_db(self, db: Session):
        self.db = db
        self.store = MeetingStore(db)

    def get_member(self, user_id: str) -> User:
        member = self.db.query(User).filter(User.user_id == user_id).first()
        if member is None:
            raise NotFoundError("Member not found", details={"user_id": user_id})
        return member

    def get_attendance(
        self,
        user_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> Dict[str, Any]:
        """Every meeting that lists the member as an attendee, newest first."""
        self.get_member(user_id)
        records = []
        for meeting in self.store.find(date_from=start, date_to=end):
            entry = next(
                (a for a in meeting.attendees or [] if a.get("user_id") == user_id),
                None,
            )
            if entry is None:
                continue
            records.append(
                {
                    "id": meeting.id,
                    "meeting_id": meeting.meeting_id,
                    "title": meeting.title,
                    "date": meeting.date,
                    "start_time": meeting.start_time,
                    "end_time": meeting.end_time,
                    "venue": meeting.venue,
                    "status": entry.get("status") or AttendanceStatus.ABSENT.value,
                    "time": entry.get("time"),
                }
            )

        present = sum(
            1 for record in records if record["status"] == AttendanceStatus.PRESENT.value
        )
        return {
            "attendance": records,
            "statistics": {
                "total_meetings": len(records),
                "present_count": present,
                "absent_count": len(records) - present,
                "attendance_rate": _rate(present, len(records)),
            },
        }

    def get_tasks(self, user_id: str, status: Optional[str] = None) -> Dict[str, Any]:
        """
        Action items assigned to the member across all meetings.

        ``status`` narrows the returned list; the statistics always cover
        every task assigned to the member.
        """
        self.get_member(user_id)
        tasks = []
        for meeting in self.store.find():
            for item in (meeting.minutes or {}).get("action_items") or []:
                if item.get("assignee_id") != user_id:
                    continue
                tasks.append(
                    {
                        "action_item_id": item.get("action_item_id"),
                        "task": item.get("task"),
                        "id": meeting.id,
                        "meeting_id": meeting.meeting_id,
                        "meeting_title": meeting.title,
                        "meeting_date": meeting.date,
                        "deadline": item.get("deadline"),
                        "status": item.get("status") or ActionItemStatus.PENDING.value,
                        "priority": item.get("priority"),
                        "notes": item.get("notes"),
                        "completion_date": item.get("completion_date"),
                    }
                )

        completed = sum(
            1 for task in tasks if task["status"] == ActionItemStatus.COMPLETED.value
        )
        return {
            "tasks": [task for task in tasks if not status or task["status"] == status],
            "statistics": {
                "total_tasks": len(tasks),
                "completed_tasks": completed,
                "pending_tasks": len(tasks) - completed,
                "completion_rate": _rate(completed, len(tasks)),
            },
        }

    def get_top_performers(self, limit: int = TOP_PERFORMER_LIMIT) -> List[Dict[str, Any]]:
        members = (
            self.db.query(User)
            .filter(User.is_active.is_(True))
            .order_by(
                User.tasks_completed.desc(),
                User.meetings_attended.desc(),
                User.user_id.asc(),
            )
            .limit(limit)
            .all()
        )
        return [
            {
                "rank": rank,
                "user_id": member.user_id,
                "name": member.display_name,
                "role": member.role,
                "meetings_attended": member.meetings_attended or 0,
                "tasks_completed": member.tasks_completed or 0,
            }
            for rank, member in enumerate(members, start=1)
        ]

    def get_statistics(self) -> Dict[str, Any]:
        active = self.db.query(User).filter(User.is_active.is_(True))
        total = active.count()
        by_role = {
            role: count
            for role, count in active.with_entities(User.role, func.count(User.user_id))
            .group_by(User.role)
            .all()
        }
        averages = active.with_entities(
            func.avg(User.meetings_attended), func.avg(User.tasks_completed)
        ).one()
        recent = active.order_by(User.created_at.desc(), User.user_id.desc()).limit(
            RECENT_MEMBER_LIMIT
        )
        return {
            "total_members": total,
            "by_role": by_role,
            "average_meetings_attended": round(float(averages[0] or 0), 1),
            "average_tasks_completed": round(float(averages[1] or 0), 1),
            "recent_members": [
                {"user_id": m.user_id, "name": m.display_name, "role": m.role}
                for m in recent
            ],
        }


def get_member_manager(db: Session = Depends(get_db)) -> MemberManager:
    """Dependency provider for MemberManager."""
    manager = MemberManager()
    manager.set_db(db)
    return manager
