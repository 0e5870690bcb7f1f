"""
SQLAlchemy-backed persistence for meeting records.

``update_by_id`` is the single write path for existing meetings: it loads the
row, lets the caller mutate it, pushes the pre-image into the version ring
buffer and commits everything in one flush. ``Meeting.version`` is the
mapper's ``version_id_col``, so the UPDATE only matches the row version that
was read; a concurrent writer surfaces as ``StaleDataError`` and the mutation
is re-applied to the fresh row.
"""

from datetime import date, datetime, timezone
import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config.loader import get_meeting_settings
from ..exceptions import ConflictError, NotFoundError
from ..models.meeting import Meeting
from ..services.version_history import push_version
from ..utils.identifiers import generate_meeting_id

logger = logging.getLogger(__name__)

MeetingMutator = Callable[[Meeting], None]

_SORTABLE_COLUMNS = {
    "date": Meeting.date,
    "start_time": Meeting.start_time,
    "created_at": Meeting.created_at,
    "updated_at": Meeting.updated_at,
    "title": Meeting.title,
    "meeting_id": Meeting.meeting_id,
}
DEFAULT_ORDER = ("-date", "-start_time")


def _is_meeting_id_conflict(exc: IntegrityError) -> bool:
    return "meeting_id" in str(getattr(exc, "orig", exc))


class MeetingStore:
    """Keyed storage for meetings with filter queries and atomic updates."""

    def __init__(
        self,
        db: Session,
        id_retry_attempts: Optional[int] = None,
        update_retry_attempts: Optional[int] = None,
        version_history_limit: Optional[int] = None,
    ):
        self.db = db
        settings = get_meeting_settings()
        self.id_retry_attempts = id_retry_attempts or settings["id_retry_attempts"]
        self.update_retry_attempts = (
            update_retry_attempts or settings["update_retry_attempts"]
        )
        self.version_history_limit = (
            version_history_limit or settings["version_history_limit"]
        )

    # --- Reads -----------------------------------------------------------

    def find_by_id(self, record_id: str, refresh: bool = False) -> Optional[Meeting]:
        """Look up a meeting; ``refresh`` bypasses state already loaded in the session."""
        query = self.db.query(Meeting).filter(Meeting.id == record_id)
        if refresh:
            query = query.populate_existing()
        return query.one_or_none()

    def find_by_meeting_id(self, meeting_id: str) -> Optional[Meeting]:
        return (
            self.db.query(Meeting)
            .filter(Meeting.meeting_id == meeting_id)
            .one_or_none()
        )

    def _filtered(
        self,
        type: Optional[str] = None,
        status: Optional[Any] = None,
        archived: Optional[bool] = None,
        published: Optional[bool] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        created_by: Optional[str] = None,
    ):
        query = self.db.query(Meeting)
        if type:
            query = query.filter(Meeting.type == type)
        if status:
            if isinstance(status, (list, tuple, set, frozenset)):
                query = query.filter(Meeting.status.in_(list(status)))
            else:
                query = query.filter(Meeting.status == status)
        if archived is not None:
            query = query.filter(Meeting.archived.is_(archived))
        if published is not None:
            query = query.filter(Meeting.published.is_(published))
        if date_from is not None:
            query = query.filter(Meeting.date >= date_from)
        if date_to is not None:
            query = query.filter(Meeting.date <= date_to)
        if created_by:
            query = query.filter(Meeting.created_by == created_by)
        return query

    @staticmethod
    def _order_clauses(order_by: Sequence[str]):
        clauses = []
        for key in order_by:
            descending = key.startswith("-")
            column = _SORTABLE_COLUMNS.get(key.lstrip("-"))
            if column is None:
                raise ValueError(f"Unsupported sort key '{key}'")
            clauses.append(column.desc() if descending else column.asc())
        return clauses

    def find(
        self,
        skip: int = 0,
        limit: Optional[int] = None,
        order_by: Sequence[str] = DEFAULT_ORDER,
        **criteria: Any,
    ) -> List[Meeting]:
        query = self._filtered(**criteria).order_by(*self._order_clauses(order_by))
        if skip:
            query = query.offset(skip)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def count(self, **criteria: Any) -> int:
        return self._filtered(**criteria).count()

    # --- Writes ----------------------------------------------------------

    def insert(self, meeting: Meeting, created_at: Optional[datetime] = None) -> Meeting:
        """
        Persist a new meeting, assigning its SC-YYYY-MM-DD-NNN business key.

        A candidate key that another writer committed first violates
        ``uq_meetings_meeting_id``; the insert is rolled back and retried with
        a freshly computed key.
        """
        created_at = created_at or datetime.now(timezone.utc)
        meeting.created_at = created_at
        for attempt in range(1, self.id_retry_attempts + 1):
            try:
                meeting.meeting_id = generate_meeting_id(self.db, created_at)
            except OverflowError as exc:
                raise ConflictError(str(exc)) from exc
            self.db.add(meeting)
            try:
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                if not _is_meeting_id_conflict(exc):
                    raise
                logger.warning(
                    "Meeting id %s already taken (attempt %s/%s); retrying.",
                    meeting.meeting_id,
                    attempt,
                    self.id_retry_attempts,
                )
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Failed to insert meeting %s", meeting.title)
                raise
            self.db.refresh(meeting)
            logger.info("Inserted meeting %s (%s)", meeting.meeting_id, meeting.id)
            return meeting
        raise ConflictError(
            "Could not allocate a unique meeting identifier",
            details={"attempts": self.id_retry_attempts},
        )

    def reinstate(self, meeting: Meeting) -> Meeting:
        """
        Re-insert a previously removed meeting under its original keys.

        The mapper assigns version 1 to every INSERT, so the archived version
        is written back with a plain table UPDATE in the same transaction.
        Anything else pending in the session is committed with it.
        """
        version = meeting.version or 1
        self.db.add(meeting)
        try:
            self.db.flush()
            self.db.execute(
                Meeting.__table__.update()
                .where(Meeting.__table__.c.id == meeting.id)
                .values(version=version)
            )
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning("Cannot reinstate meeting %s: %s", meeting.meeting_id, exc.orig)
            raise ConflictError(
                "A meeting with this identifier already exists",
                details={"id": meeting.id, "meeting_id": meeting.meeting_id},
            ) from exc
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to reinstate meeting %s", meeting.meeting_id)
            raise
        self.db.refresh(meeting)
        logger.info("Reinstated meeting %s (%s)", meeting.meeting_id, meeting.id)
        return meeting

    def update_by_id(
        self,
        record_id: str,
        mutator: MeetingMutator,
        actor_id: Optional[str] = None,
    ) -> Meeting:
        """
        Apply ``mutator`` to the stored meeting and commit it as a new version.

        The mutator must assign new values to JSON columns rather than
        mutating the loaded lists in place. A mutation that leaves every
        column unchanged writes nothing and keeps the current version.
        Exceptions raised by the mutator roll the session back and propagate.
        """
        for attempt in range(1, self.update_retry_attempts + 1):
            meeting = (
                self.db.query(Meeting)
                .filter(Meeting.id == record_id)
                .populate_existing()
                .with_for_update()
                .one_or_none()
            )
            if meeting is None:
                raise NotFoundError("Meeting not found", details={"id": record_id})

            snapshot = meeting.to_record()
            prior_version = meeting.version
            try:
                mutator(meeting)
            except Exception:
                self.db.rollback()
                raise

            if not self.db.is_modified(meeting):
                logger.debug("No changes for meeting %s; skipping write.", record_id)
                return meeting

            now = datetime.now(timezone.utc)
            meeting.previous_versions = push_version(
                meeting.previous_versions,
                snapshot,
                prior_version,
                now,
                actor_id,
                limit=self.version_history_limit,
            )
            if actor_id:
                meeting.updated_by = actor_id
            meeting.updated_at = now
            try:
                self.db.commit()
            except StaleDataError:
                self.db.rollback()
                logger.warning(
                    "Meeting %s changed underneath update (attempt %s/%s); re-applying.",
                    record_id,
                    attempt,
                    self.update_retry_attempts,
                )
                continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Failed to update meeting %s", record_id)
                raise
            self.db.refresh(meeting)
            return meeting
        raise ConflictError(
            "Meeting was modified concurrently; please retry",
            details={"id": record_id, "attempts": self.update_retry_attempts},
        )

    def delete_by_id(self, record_id: str, expected_version: Optional[int] = None) -> bool:
        """
        Remove a meeting; returns False when it does not exist.

        With ``expected_version`` the row is only removed while it is still at
        that version. The DELETE itself is matched on the loaded version, so a
        write committed in between raises ConflictError and the row stays.
        """
        meeting = self.find_by_id(record_id, refresh=True)
        if meeting is None:
            return False
        if expected_version is not None and meeting.version != expected_version:
            logger.warning(
                "Meeting %s moved from version %s to %s before delete",
                record_id,
                expected_version,
                meeting.version,
            )
            raise ConflictError(
                "Meeting was modified concurrently; please retry",
                details={"id": record_id, "version": meeting.version},
            )
        try:
            self.db.delete(meeting)
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            logger.warning("Meeting %s changed before it could be deleted", record_id)
            raise ConflictError(
                "Meeting was modified concurrently; please retry",
                details={"id": record_id},
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to delete meeting %s", record_id)
            raise
        logger.info("Deleted meeting %s (%s)", meeting.meeting_id, record_id)
        return True

    # --- Aggregates --------------------------------------------------------

    def count_by(self, column_name: str, **criteria: Any) -> Dict[str, int]:
        column = getattr(Meeting, column_name)
        rows = (
            self._filtered(**criteria)
            .with_entities(column, func.count(Meeting.id))
            .group_by(column)
            .all()
        )
        return {str(key): int(total) for key, total in rows}
