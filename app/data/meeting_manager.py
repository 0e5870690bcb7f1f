import copy
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from fastapi import Depends
from sqlalchemy.orm import Session

from ..config.loader import get_meeting_settings
from ..database import get_db
from ..exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationFailure,
)
from ..models.meeting import Meeting
from ..models.user import User
from ..schemas.meeting import (
    AttendanceStatus,
    AttendeeInput,
    MeetingCreate,
    MeetingStatus,
    MeetingUpdate,
    MinutesUpdate,
    ActionItemStatus,
)
from ..services.events import ActionItemCompleted, AttendeeMarkedPresent, EventBus
from ..services.notifier import (
    LoggingNotifier,
    NotificationResult,
    Notifier,
    Recipient,
    dispatch_each,
    get_notifier,
)
from ..services.performance_tracker import PerformanceTracker
from ..utils.identifiers import generate_action_item_id
from .archive_store import ArchiveStore
from .meeting_store import MeetingStore
from .user_manager import UserManager

CREATE_STATUSES = {MeetingStatus.DRAFT.value, MeetingStatus.SCHEDULED.value}
# Columns that cannot be cleared through a patch.
REQUIRED_FIELDS = {
    "title",
    "type",
    "date",
    "start_time",
    "end_time",
    "venue",
    "chairperson_id",
    "status",
}
JSON_FIELDS = ("attendees", "agenda", "questions", "minutes", "tags")
STATISTICS_MONTHS = 6


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _clock(value: datetime) -> str:
    return f"{value:%H:%M}"


def _minutes_of_day(value: str) -> int:
    hours, minutes = value.split(":", 1)
    return int(hours) * 60 + int(minutes)


def _padded_clock(value: str) -> str:
    hours, minutes = value.split(":", 1)
    return f"{int(hours):02d}:{minutes}"


def _enum_value(value: Any) -> Any:
    return getattr(value, "value", value)


def _shift_month(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


@dataclass
class DispatchResult:
    """Outcome of a notification fan-out for one meeting."""

    meeting: Meeting
    results: List[NotificationResult] = field(default_factory=list)

    @property
    def delivered(self) -> int:
        return sum(1 for result in self.results if result.delivered)

    @property
    def failed(self) -> int:
        return len(self.results) - self.delivered


class MeetingManager:
    """Owns the meeting lifecycle: creation, versioned edits, minutes and archival."""

    def __init__(
        self,
        db: Session,
        logger=None,
        notifier: Optional[Notifier] = None,
        events: Optional[EventBus] = None,
        store: Optional[MeetingStore] = None,
        archive_store: Optional[ArchiveStore] = None,
    ):
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.settings = get_meeting_settings()
        self.store = store or MeetingStore(db)
        self.archive_store = archive_store or ArchiveStore(db)
        self.notifier = notifier or LoggingNotifier()
        self.events = events or EventBus()

    # --- Lookups and guards ----------------------------------------------

    def get_meeting(self, meeting_id: str) -> Meeting:
        """Return the meeting with the given store id or raise NotFoundError."""
        meeting = self.store.find_by_id(meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting not found", details={"id": meeting_id})
        return meeting

    @staticmethod
    def can_modify(meeting: Meeting, actor: Any) -> bool:
        if actor is None:
            return False
        if getattr(actor, "is_privileged", False):
            return True
        return actor.user_id in {meeting.created_by, meeting.chairperson_id}

    def ensure_can_modify(self, meeting: Meeting, actor: Any) -> None:
        if not self.can_modify(meeting, actor):
            self.logger.warning(
                "User %s denied modification of meeting %s",
                getattr(actor, "user_id", None),
                meeting.meeting_id,
            )
            raise ForbiddenError("Not authorized to modify this meeting")

    @staticmethod
    def _ensure_editable(meeting: Meeting) -> None:
        if meeting.archived:
            raise InvalidStateError("Archived meetings must be restored before editing")

    @staticmethod
    def _has_summary(meeting: Meeting) -> bool:
        summary = (meeting.minutes or {}).get("summary")
        return bool(summary and str(summary).strip())

    def _ensure_published_summary(self, meeting: Meeting) -> None:
        if meeting.published and not self._has_summary(meeting):
            raise InvalidStateError("Published meetings require a minutes summary")

    def _require_users(self, user_ids: Iterable[Optional[str]]) -> None:
        wanted = {user_id for user_id in user_ids if user_id}
        if not wanted:
            return
        users = UserManager()
        users.set_db(self.db)
        found = {user.user_id for user in users.get_users_by_ids(wanted)}
        missing = sorted(wanted - found)
        if missing:
            raise NotFoundError(
                f"User(s) not found for ID(s): {missing}", details={"missing": missing}
            )

    # --- Normalisation -----------------------------------------------------

    @staticmethod
    def _normalize_attendees(
        attendees: Sequence[AttendeeInput], default_time: str
    ) -> List[Dict[str, Any]]:
        """
        Convert caller-supplied attendees to the stored shape, one entry per user.

        A repeated user id overwrites the earlier entry in place.
        """
        by_user: Dict[str, Dict[str, Any]] = {}
        for attendee in attendees:
            by_user[attendee.user_id] = {
                "user_id": attendee.user_id,
                "status": _enum_value(attendee.status) or AttendanceStatus.PRESENT.value,
                "time": attendee.time or default_time,
                "notes": attendee.notes,
            }
        return list(by_user.values())

    @staticmethod
    def _number_agenda(agenda: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {**item, "item_number": index}
            for index, item in enumerate(agenda, start=1)
        ]

    @staticmethod
    def _assign_action_item_ids(
        meeting_id: str, action_items: Sequence[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        known = [item.get("action_item_id") for item in action_items]
        assigned = []
        for item in action_items:
            item = dict(item)
            if not item.get("action_item_id"):
                item["action_item_id"] = generate_action_item_id(meeting_id, known)
                known.append(item["action_item_id"])
            assigned.append(item)
        return assigned

    # --- Lifecycle -----------------------------------------------------------

    def create_meeting(
        self,
        payload: MeetingCreate,
        actor: Any,
        created_at: Optional[datetime] = None,
    ) -> Meeting:
        """Create a meeting and assign its SC-YYYY-MM-DD-NNN identifier.

        Args:
            payload: Validated meeting data.
            actor: The user creating the meeting.
            created_at: Creation timestamp; selects the identifier's day.

        Raises:
            NotFoundError: A referenced user does not exist.
            ValidationFailure: The requested initial status is not draft/scheduled.
        """
        status = _enum_value(payload.status) or self.settings["default_status"]
        if status not in CREATE_STATUSES:
            raise ValidationFailure(
                "New meetings must start as draft or scheduled",
                details={"status": status},
            )

        minutes_taker_id = payload.minutes_taker_id or actor.user_id
        self._require_users(
            [payload.chairperson_id, minutes_taker_id]
            + [attendee.user_id for attendee in payload.attendees]
        )

        meeting = Meeting(
            title=payload.title,
            type=_enum_value(payload.type),
            date=payload.date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            venue=payload.venue,
            objective=payload.objective,
            chairperson_id=payload.chairperson_id,
            minutes_taker_id=minutes_taker_id,
            created_by=actor.user_id,
            updated_by=actor.user_id,
            attendees=self._normalize_attendees(payload.attendees, payload.start_time),
            agenda=self._number_agenda(
                [item.model_dump(mode="json") for item in payload.agenda]
            ),
            questions=[item.model_dump(mode="json") for item in payload.questions],
            tags=list(payload.tags),
            minutes=None,
            reminders=[],
            previous_versions=[],
            status=status,
            archived=False,
            published=False,
        )
        meeting = self.store.insert(meeting, created_at=created_at)
        self.logger.info(
            "Meeting %s created by %s", meeting.meeting_id, actor.user_id
        )
        return meeting

    def update_meeting(
        self, meeting_id: str, patch: MeetingUpdate, actor: Any
    ) -> Meeting:
        """Shallow-merge the set fields of ``patch`` into the meeting as a new version."""
        changes = {
            key: value
            for key, value in patch.model_dump(exclude_unset=True).items()
            if key not in JSON_FIELDS
            and not (value is None and key in REQUIRED_FIELDS)
        }
        for key in ("type", "status"):
            if key in changes:
                changes[key] = _enum_value(changes[key])
        json_changes = {
            key: getattr(patch, key)
            for key in JSON_FIELDS
            if key in patch.model_fields_set
        }

        self._require_users(
            [changes.get("chairperson_id"), changes.get("minutes_taker_id")]
            + [attendee.user_id for attendee in (json_changes.get("attendees") or [])]
        )

        def mutate(meeting: Meeting) -> None:
            self._ensure_editable(meeting)
            for key, value in changes.items():
                setattr(meeting, key, value)
            if _minutes_of_day(meeting.end_time) <= _minutes_of_day(meeting.start_time):
                raise ValidationFailure("end_time must be after start_time")

            if "attendees" in json_changes:
                meeting.attendees = self._normalize_attendees(
                    json_changes["attendees"] or [], meeting.start_time
                )
            if "agenda" in json_changes:
                meeting.agenda = self._number_agenda(
                    [item.model_dump(mode="json") for item in json_changes["agenda"] or []]
                )
            if "questions" in json_changes:
                meeting.questions = [
                    item.model_dump(mode="json") for item in json_changes["questions"] or []
                ]
            if "tags" in json_changes:
                meeting.tags = list(json_changes["tags"] or [])
            if "minutes" in json_changes:
                minutes = json_changes["minutes"]
                if minutes is None:
                    meeting.minutes = None
                else:
                    dumped = minutes.model_dump(mode="json")
                    dumped["action_items"] = self._assign_action_item_ids(
                        meeting.meeting_id, dumped["action_items"]
                    )
                    meeting.minutes = dumped
            self._ensure_published_summary(meeting)

        meeting = self.store.update_by_id(meeting_id, mutate, actor.user_id)
        self.logger.info(
            "Meeting %s updated by %s (version %s)",
            meeting.meeting_id,
            actor.user_id,
            meeting.version,
        )
        return meeting

    def update_minutes(
        self, meeting_id: str, patch: MinutesUpdate, actor: Any
    ) -> Meeting:
        """
        Merge the provided minutes fields and mark the meeting completed.

        Omitted fields keep their stored value; attaching minutes always
        moves the meeting to ``completed``.
        """
        dumped = patch.model_dump(mode="json")
        provided = {
            key: dumped[key]
            for key in patch.model_fields_set
            if dumped.get(key) is not None
        }

        def mutate(meeting: Meeting) -> None:
            self._ensure_editable(meeting)
            current = copy.deepcopy(meeting.minutes or {})
            merged = {
                "summary": current.get("summary"),
                "key_points": current.get("key_points") or [],
                "decisions": current.get("decisions") or [],
                "action_items": current.get("action_items") or [],
                "attachments": current.get("attachments") or [],
                "next_meeting": current.get("next_meeting"),
            }
            merged.update(copy.deepcopy(provided))
            merged["action_items"] = self._assign_action_item_ids(
                meeting.meeting_id, merged["action_items"]
            )
            meeting.minutes = merged
            self._ensure_published_summary(meeting)
            meeting.status = MeetingStatus.COMPLETED.value

        meeting = self.store.update_by_id(meeting_id, mutate, actor.user_id)
        self.logger.info(
            "Minutes recorded for meeting %s by %s", meeting.meeting_id, actor.user_id
        )
        return meeting

    async def publish_meeting(self, meeting_id: str, actor: Any) -> DispatchResult:
        """Publish the minutes and notify opted-in attendees.

        Raises:
            InvalidStateError: The minutes have no summary.
        """

        def mutate(meeting: Meeting) -> None:
            if not self._has_summary(meeting):
                raise InvalidStateError("Meeting minutes are required before publishing")
            meeting.published = True
            meeting.published_at = _now()
            meeting.published_by = actor.user_id

        meeting = self.store.update_by_id(meeting_id, mutate, actor.user_id)
        self.logger.info("Meeting %s published by %s", meeting.meeting_id, actor.user_id)

        recipients = self._recipients(
            attendee.get("user_id") for attendee in meeting.attendees or []
        )
        results = await dispatch_each(
            self.notifier,
            recipients,
            "minutes_published",
            self._notification_context(meeting),
        )
        outcome = DispatchResult(meeting=meeting, results=results)
        self.logger.info(
            "Minutes notifications for %s: %s delivered, %s failed",
            meeting.meeting_id,
            outcome.delivered,
            outcome.failed,
        )
        return outcome

    def archive_meeting(self, meeting_id: str, actor: Any = None) -> Meeting:
        """Archive a completed meeting; archiving twice is a no-op."""

        def mutate(meeting: Meeting) -> None:
            if meeting.archived:
                return
            if meeting.status != MeetingStatus.COMPLETED.value:
                raise InvalidStateError("Only completed meetings can be archived")
            meeting.archived = True
            meeting.archived_at = _now()

        return self.store.update_by_id(
            meeting_id, mutate, getattr(actor, "user_id", None)
        )

    def restore_meeting(self, meeting_id: str, actor: Any = None) -> Meeting:
        """Clear the archived flag; restoring a live meeting is a no-op."""

        def mutate(meeting: Meeting) -> None:
            if not meeting.archived:
                return
            meeting.archived = False
            meeting.archived_at = None

        return self.store.update_by_id(
            meeting_id, mutate, getattr(actor, "user_id", None)
        )

    def delete_meeting(
        self, meeting_id: str, actor: Any, reason: Optional[str] = None
    ) -> str:
        """
        Archive a full snapshot, then remove the meeting. Returns the archive id.

        If the archive write fails the error propagates and the meeting stays.
        A write that lands after the snapshot is taken makes the delete fail
        with ConflictError instead of removing unarchived changes.
        """
        if not getattr(actor, "is_privileged", False):
            raise ForbiddenError("Only controllers can delete meetings")
        meeting = self.store.find_by_id(meeting_id, refresh=True)
        if meeting is None:
            raise NotFoundError("Meeting not found", details={"id": meeting_id})
        snapshot = meeting.to_record(include_history=True)
        archive_id = self.archive_store.write(
            item_id=meeting.id,
            item_type="meeting",
            snapshot=snapshot,
            archived_by=actor.user_id,
            reason=reason,
            metadata={
                "version": snapshot["version"],
                "original_collection": "meetings",
                "meeting_id": meeting.meeting_id,
            },
        )
        self.store.delete_by_id(meeting_id, expected_version=snapshot["version"])
        self.logger.info(
            "Meeting %s deleted by %s (archive %s)",
            meeting_id,
            actor.user_id,
            archive_id,
        )
        return archive_id

    def restore_deleted_meeting(self, archive_id: str, actor: Any) -> Meeting:
        """Bring a deleted meeting back from its archive record."""
        if not getattr(actor, "is_privileged", False):
            raise ForbiddenError("Only controllers can restore deleted meetings")
        record = self.archive_store.get(archive_id)
        if record is None:
            raise NotFoundError("Archive record not found", details={"archive_id": archive_id})
        if record.item_type != "meeting":
            raise ValidationFailure(
                "Archive record does not hold a meeting",
                details={"item_type": record.item_type},
            )
        meeting = Meeting.from_record(record.original_data)
        if self.store.find_by_id(meeting.id) or self.store.find_by_meeting_id(
            meeting.meeting_id
        ):
            raise ConflictError(
                "A meeting with this identifier already exists",
                details={"meeting_id": meeting.meeting_id},
            )
        self.archive_store.mark_restored(archive_id, actor.user_id, commit=False)
        meeting = self.store.reinstate(meeting)
        self.logger.info(
            "Meeting %s restored from archive %s by %s",
            meeting.meeting_id,
            archive_id,
            actor.user_id,
        )
        return meeting

    def add_attendee(
        self,
        meeting_id: str,
        user_id: str,
        status: Any = None,
        time: Optional[str] = None,
        notes: Optional[str] = None,
        actor: Any = None,
    ) -> Meeting:
        """
        Insert or update the attendee entry for ``user_id``.

        Omitted fields keep their stored value. Moving a member into
        ``present`` emits AttendeeMarkedPresent.
        """
        self._require_users([user_id])
        status = _enum_value(status)
        outcome = {"marked_present": False}

        def mutate(meeting: Meeting) -> None:
            self._ensure_editable(meeting)
            attendees = [dict(entry) for entry in meeting.attendees or []]
            entry = next((a for a in attendees if a.get("user_id") == user_id), None)
            if entry is None:
                previous_status = None
                entry = {
                    "user_id": user_id,
                    "status": status or AttendanceStatus.PRESENT.value,
                    "time": time or _clock(_now()),
                    "notes": notes,
                }
                attendees.append(entry)
            else:
                previous_status = entry.get("status")
                if status:
                    entry["status"] = status
                if time:
                    entry["time"] = time
                if notes is not None:
                    entry["notes"] = notes
            outcome["marked_present"] = (
                entry["status"] == AttendanceStatus.PRESENT.value
                and previous_status != AttendanceStatus.PRESENT.value
            )
            meeting.attendees = attendees

        meeting = self.store.update_by_id(
            meeting_id, mutate, getattr(actor, "user_id", None)
        )
        if outcome["marked_present"]:
            self.events.publish(AttendeeMarkedPresent(meeting.meeting_id, user_id))
        return meeting

    def complete_action_item(
        self,
        meeting_id: str,
        action_item_id: str,
        completion_date: Optional[datetime] = None,
        actor: Any = None,
    ) -> Meeting:
        """Mark an action item completed; unknown ids raise NotFoundError."""
        outcome: Dict[str, Optional[ActionItemCompleted]] = {"event": None}

        def mutate(meeting: Meeting) -> None:
            self._ensure_editable(meeting)
            outcome["event"] = None
            minutes = copy.deepcopy(meeting.minutes or {})
            action_items = minutes.get("action_items") or []
            item = next(
                (i for i in action_items if i.get("action_item_id") == action_item_id),
                None,
            )
            if item is None:
                raise NotFoundError(
                    "Action item not found",
                    details={"action_item_id": action_item_id},
                )
            if item.get("status") == ActionItemStatus.COMPLETED.value:
                return
            item["status"] = ActionItemStatus.COMPLETED.value
            item["completion_date"] = (completion_date or _now()).isoformat()
            minutes["action_items"] = action_items
            meeting.minutes = minutes
            outcome["event"] = ActionItemCompleted(
                meeting.meeting_id, action_item_id, item.get("assignee_id")
            )

        meeting = self.store.update_by_id(
            meeting_id, mutate, getattr(actor, "user_id", None)
        )
        event = outcome["event"]
        if event is not None and event.assignee_id:
            self.events.publish(event)
        return meeting

    # --- Notifications -------------------------------------------------------

    def _recipients(self, user_ids: Iterable[Optional[str]]) -> List[Recipient]:
        ordered = list(dict.fromkeys(user_id for user_id in user_ids if user_id))
        if not ordered:
            return []
        users = {
            user.user_id: user
            for user in self.db.query(User).filter(
                User.user_id.in_(ordered),
                User.email_notifications.is_(True),
                User.is_active.is_(True),
                User.email.isnot(None),
            )
        }
        return [
            Recipient(
                user_id=user_id,
                name=users[user_id].display_name,
                email=users[user_id].email,
            )
            for user_id in ordered
            if user_id in users
        ]

    @staticmethod
    def _notification_context(meeting: Meeting) -> Dict[str, Any]:
        minutes = meeting.minutes or {}
        return {
            "id": meeting.id,
            "meeting_id": meeting.meeting_id,
            "title": meeting.title,
            "type": meeting.type,
            "date": f"{meeting.date:%d %B %Y}",
            "start_time": meeting.start_time,
            "end_time": meeting.end_time,
            "venue": meeting.venue,
            "objective": meeting.objective,
            "summary": minutes.get("summary"),
            "decisions": minutes.get("decisions") or [],
            "action_items": minutes.get("action_items") or [],
        }

    async def send_reminders(self, meeting_id: str, actor: Any) -> DispatchResult:
        """Remind opted-in attendees and record the reminder on the meeting."""
        meeting = self.get_meeting(meeting_id)
        recipients = self._recipients(
            attendee.get("user_id") for attendee in meeting.attendees or []
        )
        results = await dispatch_each(
            self.notifier,
            recipients,
            "meeting_reminder",
            self._notification_context(meeting),
        )
        delivered = sum(1 for result in results if result.delivered)

        def mutate(stored: Meeting) -> None:
            stored.reminders = list(stored.reminders or []) + [
                {
                    "type": "email",
                    "sent": delivered > 0,
                    "sent_at": _now().isoformat(),
                    "delivered": delivered,
                }
            ]

        meeting = self.store.update_by_id(meeting_id, mutate, actor.user_id)
        return DispatchResult(meeting=meeting, results=results)

    async def send_invitations(self, meeting_id: str, actor: Any) -> DispatchResult:
        """Invite the attendees and the chairperson."""
        meeting = self.get_meeting(meeting_id)
        user_ids = [attendee.get("user_id") for attendee in meeting.attendees or []]
        user_ids.append(meeting.chairperson_id)
        results = await dispatch_each(
            self.notifier,
            self._recipients(user_ids),
            "meeting_invitation",
            self._notification_context(meeting),
        )
        self.logger.info(
            "Invitations for %s sent by %s", meeting.meeting_id, actor.user_id
        )
        return DispatchResult(meeting=meeting, results=results)

    # --- Queries -------------------------------------------------------------

    def list_meetings(
        self,
        page: int = 1,
        limit: int = 10,
        sort: str = "-date",
        **criteria: Any,
    ) -> Tuple[List[Meeting], int, int]:
        """Return one page of meetings plus the total count and page count."""
        page = max(1, page)
        limit = max(1, limit)
        total = self.store.count(**criteria)
        items = self.store.find(
            skip=(page - 1) * limit,
            limit=limit,
            order_by=(sort, "-start_time") if sort.lstrip("-") == "date" else (sort,),
            **criteria,
        )
        pages = (total + limit - 1) // limit
        return items, total, pages

    def get_versions(self, meeting_id: str) -> List[Dict[str, Any]]:
        return list(self.get_meeting(meeting_id).previous_versions or [])

    def get_upcoming(
        self, limit: Optional[int] = None, today: Optional[date] = None
    ) -> List[Meeting]:
        return self.store.find(
            limit=limit or self.settings["upcoming_limit"],
            order_by=("date", "start_time"),
            status=MeetingStatus.SCHEDULED.value,
            archived=False,
            date_from=today or _now().date(),
        )

    def get_recent(self, limit: Optional[int] = None) -> List[Meeting]:
        return self.store.find(
            limit=limit or self.settings["recent_limit"],
            order_by=("-date", "-start_time"),
            status=MeetingStatus.COMPLETED.value,
            archived=False,
        )

    def get_calendar_events(self, start: date, end: date) -> List[Dict[str, Any]]:
        if end < start:
            raise ValidationFailure("Calendar range end precedes start")
        meetings = self.store.find(
            order_by=("date", "start_time"), date_from=start, date_to=end
        )
        return [
            {
                "id": meeting.id,
                "meeting_id": meeting.meeting_id,
                "title": meeting.title,
                "start": f"{meeting.date.isoformat()}T{_padded_clock(meeting.start_time)}:00",
                "end": f"{meeting.date.isoformat()}T{_padded_clock(meeting.end_time)}:00",
                "type": meeting.type,
                "status": meeting.status,
                "venue": meeting.venue,
            }
            for meeting in meetings
        ]

    def get_statistics(self, today: Optional[date] = None) -> Dict[str, Any]:
        today = today or _now().date()
        first_month = _shift_month(today, -(STATISTICS_MONTHS - 1))
        months = [
            f"{_shift_month(first_month, offset):%Y-%m}"
            for offset in range(STATISTICS_MONTHS)
        ]
        per_month = Counter(
            f"{row[0]:%Y-%m}"
            for row in self.db.query(Meeting.date).filter(Meeting.date >= first_month)
            if row[0] is not None and row[0] <= _shift_month(today, 1) - timedelta(days=1)
        )

        attendance = [
            sum(
                1
                for attendee in (row[0] or [])
                if attendee.get("status") == AttendanceStatus.PRESENT.value
            )
            for row in self.db.query(Meeting.attendees)
        ]
        average = round(sum(attendance) / len(attendance), 2) if attendance else 0.0

        return {
            "total": self.store.count(),
            "by_type": self.store.count_by("type"),
            "by_status": self.store.count_by("status"),
            "published": self.store.count(published=True),
            "archived": self.store.count(archived=True),
            "upcoming": self.store.count(
                status=MeetingStatus.SCHEDULED.value, archived=False, date_from=today
            ),
            "monthly": [
                {"month": month, "count": per_month.get(month, 0)} for month in months
            ],
            "average_attendance": average,
        }


def get_meeting_manager(db: Session = Depends(get_db)) -> MeetingManager:
    """Dependency provider for MeetingManager with notifications and performance tracking."""
    events = EventBus()
    PerformanceTracker(db).subscribe(events)
    return MeetingManager(db=db, notifier=get_notifier(), events=events)
