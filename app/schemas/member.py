import datetime as dt
from typing import Dict, List, Optional

from pydantic import BaseModel

from app.models.user import UserRole


class AttendanceRecord(BaseModel):
    id: str
    meeting_id: str
    title: str
    date: dt.date
    start_time: str
    end_time: str
    venue: str
    status: str
    time: Optional[str] = None


class AttendanceSummary(BaseModel):
    total_meetings: int
    present_count: int
    absent_count: int
    attendance_rate: float


class MemberAttendance(BaseModel):
    attendance: List[AttendanceRecord]
    statistics: AttendanceSummary


class MemberTask(BaseModel):
    action_item_id: Optional[str] = None
    task: Optional[str] = None
    id: str
    meeting_id: str
    meeting_title: str
    meeting_date: dt.date
    deadline: Optional[str] = None
    status: str
    priority: Optional[str] = None
    notes: Optional[str] = None
    completion_date: Optional[str] = None


class TaskSummary(BaseModel):
    total_tasks: int
    completed_tasks: int
    pending_tasks: int
    completion_rate: float


class MemberTasks(BaseModel):
    tasks: List[MemberTask]
    statistics: TaskSummary


class TopPerformer(BaseModel):
    rank: int
    user_id: str
    name: str
    role: UserRole
    meetings_attended: int
    tasks_completed: int


class RecentMember(BaseModel):
    user_id: str
    name: str
    role: UserRole


class MemberStatistics(BaseModel):
    total_members: int
    by_role: Dict[str, int]
    average_meetings_attended: float
    average_tasks_completed: float
    recent_members: List[RecentMember]
