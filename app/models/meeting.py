from datetime import date, datetime, timezone
from typing import Any, Dict, Optional
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func  # For default timestamps

from ..database import Base


def _new_store_id() -> str:
    return uuid.uuid4().hex


def _parse_clock(value: Optional[str]) -> Optional[int]:
    """Return minutes since midnight for an 'HH:MM' string."""
    if not value:
        return None
    try:
        hours, minutes = value.split(":", 1)
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        return None


def _iso(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class Meeting(Base):
    __tablename__ = "meetings"
    __table_args__ = (
        UniqueConstraint("meeting_id", name="uq_meetings_meeting_id"),
    )

    id = Column(String(32), primary_key=True, default=_new_store_id)
    meeting_id = Column(String(20), nullable=False, index=True)
    title = Column(String(200), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="regular")
    date = Column(Date, nullable=False, index=True)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    venue = Column(String(200), nullable=False)
    objective = Column(Text, nullable=True)

    chairperson_id = Column(String(20), ForeignKey("users.user_id"), nullable=False)
    minutes_taker_id = Column(String(20), ForeignKey("users.user_id"), nullable=True)
    created_by = Column(String(20), ForeignKey("users.user_id"), nullable=False)
    updated_by = Column(String(20), nullable=True)

    attendees = Column(JSON, nullable=False, default=list)
    agenda = Column(JSON, nullable=False, default=list)
    questions = Column(JSON, nullable=False, default=list)
    minutes = Column(JSON, nullable=True)
    reminders = Column(JSON, nullable=False, default=list)
    tags = Column(JSON, nullable=False, default=list)

    status = Column(String(20), nullable=False, default="draft", index=True)
    archived = Column(Boolean, nullable=False, default=False, index=True)
    archived_at = Column(DateTime(timezone=True), nullable=True)
    published = Column(Boolean, nullable=False, default=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    published_by = Column(String(20), nullable=True)

    # Bumped by SQLAlchemy on every UPDATE; a stale writer fails with StaleDataError.
    version = Column(Integer, nullable=False)
    previous_versions = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    chairperson = relationship("User", foreign_keys=[chairperson_id])
    minutes_taker = relationship("User", foreign_keys=[minutes_taker_id])
    creator = relationship("User", foreign_keys=[created_by])

    @property
    def duration_minutes(self) -> Optional[int]:
        start = _parse_clock(self.start_time)
        end = _parse_clock(self.end_time)
        if start is None or end is None:
            return None
        return end - start

    def starts_at(self) -> Optional[datetime]:
        start = _parse_clock(self.start_time)
        if self.date is None or start is None:
            return None
        return datetime(
            self.date.year,
            self.date.month,
            self.date.day,
            start // 60,
            start % 60,
            tzinfo=timezone.utc,
        )

    @property
    def is_upcoming(self) -> bool:
        starts = self.starts_at()
        return bool(starts and starts > datetime.now(timezone.utc))

    @property
    def is_past(self) -> bool:
        starts = self.starts_at()
        return bool(starts and starts < datetime.now(timezone.utc))

    def to_record(self, include_history: bool = False) -> Dict[str, Any]:
        """Return a JSON-safe snapshot of every stored field."""
        record = {
            column.name: _iso(getattr(self, column.key))
            for column in self.__table__.columns
        }
        if not include_history:
            record.pop("previous_versions", None)
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Meeting":
        """Rebuild a meeting from a ``to_record`` snapshot."""
        values = {}
        for column in cls.__table__.columns:
            if column.name not in record:
                continue
            value = record[column.name]
            if isinstance(value, str) and isinstance(column.type, DateTime):
                value = datetime.fromisoformat(value)
            elif isinstance(value, str) and isinstance(column.type, Date):
                value = date.fromisoformat(value)
            values[column.key] = value
        return cls(**values)
