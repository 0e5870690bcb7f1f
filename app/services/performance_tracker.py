import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.events import ActionItemCompleted, AttendeeMarkedPresent, EventBus

logger = logging.getLogger(__name__)


class PerformanceTracker:
    """Keeps per-member attendance and task counters in step with meeting events."""

    def __init__(self, db: Session):
        self.db = db

    def subscribe(self, bus: EventBus) -> "PerformanceTracker":
        bus.subscribe(AttendeeMarkedPresent, self.on_attendee_marked_present)
        bus.subscribe(ActionItemCompleted, self.on_action_item_completed)
        return self

    def _increment(self, user_id: str, column) -> bool:
        try:
            updated = (
                self.db.query(User)
                .filter(User.user_id == user_id)
                .update({column: column + 1}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        if not updated:
            logger.warning("Performance update skipped; user %s not found", user_id)
        return bool(updated)

    def on_attendee_marked_present(self, event: AttendeeMarkedPresent) -> None:
        if self._increment(event.user_id, User.meetings_attended):
            logger.info(
                "Recorded attendance for %s at meeting %s",
                event.user_id,
                event.meeting_id,
            )

    def on_action_item_completed(self, event: ActionItemCompleted) -> None:
        if not event.assignee_id:
            return
        if self._increment(event.assignee_id, User.tasks_completed):
            logger.info(
                "Recorded completed task %s for %s",
                event.action_item_id,
                event.assignee_id,
            )
