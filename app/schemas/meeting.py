from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"


class MeetingType(str, Enum):
    REGULAR = "regular"
    RANDOM = "random"
    SPECIAL = "special"
    COMMITTEE = "committee"


class MeetingStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"


class AgendaItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    POSTPONED = "postponed"


class ActionItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _strip_text(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _minutes_of_day(value: str) -> int:
    hours, minutes = value.split(":", 1)
    return int(hours) * 60 + int(minutes)


class AttendeeInput(BaseModel):
    """Caller-supplied attendee; missing status/time are filled in by the manager."""

    user_id: str = Field(..., min_length=1)
    status: Optional[AttendanceStatus] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    notes: Optional[str] = Field(None, max_length=500)


class Attendee(BaseModel):
    user_id: str
    status: AttendanceStatus = AttendanceStatus.PRESENT
    time: Optional[str] = None
    notes: Optional[str] = None


class AgendaItem(BaseModel):
    item_number: Optional[int] = Field(None, ge=1)
    title: str = Field(..., min_length=1, max_length=200)
    presenter_id: Optional[str] = None
    duration: Optional[int] = Field(None, ge=1, le=120)
    description: Optional[str] = Field(None, max_length=1000)
    status: AgendaItemStatus = AgendaItemStatus.PENDING
    discussion: Optional[str] = None
    decisions: List[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        return _strip_text(value)


class Voting(BaseModel):
    in_favor: int = Field(0, ge=0)
    against: int = Field(0, ge=0)
    abstained: int = Field(0, ge=0)


class Decision(BaseModel):
    decision: str = Field(..., min_length=1)
    voting: Optional[Voting] = None
    implement_by: Optional[dt.date] = None

    @model_validator(mode="before")
    @classmethod
    def accept_plain_text(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"decision": value}
        return value


class ActionItem(BaseModel):
    action_item_id: Optional[str] = None
    task: str = Field(..., min_length=1, max_length=500)
    assignee_id: Optional[str] = None
    deadline: Optional[dt.date] = None
    status: ActionItemStatus = ActionItemStatus.PENDING
    priority: Priority = Priority.MEDIUM
    notes: Optional[str] = None
    completion_date: Optional[dt.datetime] = None


class Attachment(BaseModel):
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    type: Optional[str] = None


class NextMeeting(BaseModel):
    date: Optional[dt.date] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    venue: Optional[str] = None
    agenda: Optional[str] = None


class Minutes(BaseModel):
    summary: Optional[str] = Field(None, max_length=5000)
    key_points: List[str] = Field(default_factory=list)
    decisions: List[Decision] = Field(default_factory=list)
    action_items: List[ActionItem] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    next_meeting: Optional[NextMeeting] = None


class Question(BaseModel):
    question: str = Field(..., min_length=1)
    asked_by: Optional[str] = None
    answer: Optional[str] = None
    status: Literal["pending", "answered", "deferred"] = "pending"
    priority: Literal["low", "medium", "high"] = "medium"


class MeetingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    type: MeetingType = MeetingType.REGULAR
    date: dt.date
    start_time: str = Field(..., pattern=TIME_PATTERN)
    end_time: str = Field(..., pattern=TIME_PATTERN)
    venue: str = Field(..., min_length=1, max_length=200)
    objective: Optional[str] = Field(None, max_length=1000)
    chairperson_id: str = Field(..., min_length=1)
    minutes_taker_id: Optional[str] = None
    status: Optional[MeetingStatus] = None
    attendees: List[AttendeeInput] = Field(default_factory=list)
    agenda: List[AgendaItem] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @field_validator("title", "venue", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip_text(value)

    @model_validator(mode="after")
    def ensure_end_after_start(self) -> "MeetingCreate":
        if _minutes_of_day(self.end_time) <= _minutes_of_day(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class MeetingUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    type: Optional[MeetingType] = None
    date: Optional[dt.date] = None
    start_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    venue: Optional[str] = Field(None, min_length=1, max_length=200)
    objective: Optional[str] = Field(None, max_length=1000)
    chairperson_id: Optional[str] = None
    minutes_taker_id: Optional[str] = None
    status: Optional[MeetingStatus] = None
    attendees: Optional[List[AttendeeInput]] = None
    agenda: Optional[List[AgendaItem]] = None
    questions: Optional[List[Question]] = None
    minutes: Optional[Minutes] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "venue", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip_text(value)


class MinutesUpdate(BaseModel):
    summary: Optional[str] = Field(None, max_length=5000)
    key_points: Optional[List[str]] = None
    decisions: Optional[List[Decision]] = None
    action_items: Optional[List[ActionItem]] = None
    attachments: Optional[List[Attachment]] = None
    next_meeting: Optional[NextMeeting] = None


class AttendeeUpsert(BaseModel):
    user_id: str = Field(..., min_length=1)
    status: Optional[AttendanceStatus] = None
    time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    notes: Optional[str] = Field(None, max_length=500)


class ActionItemCompletion(BaseModel):
    completion_date: Optional[dt.datetime] = None


class MeetingResponse(BaseModel):
    id: str
    meeting_id: str
    title: str
    type: MeetingType
    date: dt.date
    start_time: str
    end_time: str
    venue: str
    objective: Optional[str] = None
    chairperson_id: str
    minutes_taker_id: Optional[str] = None
    attendees: List[Attendee] = Field(default_factory=list)
    agenda: List[AgendaItem] = Field(default_factory=list)
    questions: List[Question] = Field(default_factory=list)
    minutes: Optional[Minutes] = None
    status: MeetingStatus
    archived: bool
    archived_at: Optional[dt.datetime] = None
    published: bool
    published_at: Optional[dt.datetime] = None
    published_by: Optional[str] = None
    reminders: List[Dict[str, Any]] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    version: int
    created_by: str
    updated_by: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    duration_minutes: Optional[int] = None
    is_upcoming: bool = False
    is_past: bool = False

    model_config = {"from_attributes": True}


class MeetingListResponse(BaseModel):
    items: List[MeetingResponse]
    total: int
    page: int
    pages: int


class VersionEntry(BaseModel):
    version: int
    data: Dict[str, Any]
    updated_at: dt.datetime
    updated_by: Optional[str] = None


class NotificationOutcome(BaseModel):
    user_id: str
    email: str
    delivered: bool
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class PublishResponse(BaseModel):
    meeting: MeetingResponse
    notified: int
    failed: int
    results: List[NotificationOutcome] = Field(default_factory=list)


class DispatchResponse(BaseModel):
    meeting_id: str
    sent: int
    failed: int
    results: List[NotificationOutcome] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    message: str
    archive_id: str


class MonthlyCount(BaseModel):
    month: str
    count: int


class MeetingStatistics(BaseModel):
    total: int
    by_type: Dict[str, int]
    by_status: Dict[str, int]
    published: int
    archived: int
    upcoming: int
    monthly: List[MonthlyCount]
    average_attendance: float


class CalendarEvent(BaseModel):
    id: str
    meeting_id: str
    title: str
    start: str
    end: str
    type: MeetingType
    status: MeetingStatus
    venue: str
