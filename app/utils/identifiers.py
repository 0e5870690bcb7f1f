import re
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from app.models.user import User
from app.models.meeting import Meeting

USER_ID_PREFIX = "USR"
USER_ID_SEQUENCE_WIDTH = 3
USER_ID_STEM_LENGTH = 6

MEETING_ID_PREFIX = "SC"
MEETING_ID_SEQUENCE_WIDTH = 3
MEETING_ID_MAX_SEQUENCE = 10**MEETING_ID_SEQUENCE_WIDTH - 1
MEETING_ID_PATTERN = re.compile(r"^SC-\d{4}-\d{2}-\d{2}-\d{3}$")

ACTION_ITEM_PREFIX = "ACT"
ACTION_ITEM_SEQUENCE_WIDTH = 3

ARCHIVE_ID_PREFIX = "ARC"


def _clean_stem(value: Optional[str]) -> str:
    """
    Normalise the last name into a six-character uppercase stem.
    Non-alphanumeric characters are stripped and the result padded with X.
    """
    if not value:
        cleaned = ""
    else:
        cleaned = re.sub(r"[^A-Z0-9]", "", value.upper())
    if not cleaned:
        cleaned = "X" * USER_ID_STEM_LENGTH
    return (cleaned[:USER_ID_STEM_LENGTH]).ljust(USER_ID_STEM_LENGTH, "X")


def _clean_initial(value: Optional[str]) -> str:
    """Return the uppercase first initial or 'X' when unavailable."""
    if not value:
        return "X"
    cleaned = re.sub(r"[^A-Z0-9]", "", value.upper())
    return cleaned[0] if cleaned else "X"


def build_user_id_prefix(first_name: Optional[str], last_name: Optional[str]) -> str:
    stem = _clean_stem(last_name)
    initial = _clean_initial(first_name)
    return f"{USER_ID_PREFIX}-{stem}{initial}"


def _next_sequence_for_prefix(db: Session, prefix: str) -> int:
    """
    Determine the next numeric sequence for the given prefix.
    The prefix is expected without the trailing dash (e.g., 'USR-ADKINSJ').
    """
    like_pattern = f"{prefix}-%"
    existing = (
        db.query(User.user_id)
        .filter(User.user_id.like(like_pattern))
        .order_by(User.user_id.desc())
        .limit(1)
        .scalar()
    )
    if not existing:
        return 1
    try:
        return int(existing.split("-")[-1]) + 1
    except (ValueError, IndexError):
        return 1


def generate_user_id(
    db: Session, first_name: Optional[str], last_name: Optional[str]
) -> str:
    """
    Construct a unique `user_id` following the USR-LLLLLLF-NNN pattern.
    The sequence component increments per prefix to avoid collisions.
    """
    prefix = build_user_id_prefix(first_name, last_name)
    sequence = _next_sequence_for_prefix(db, prefix)
    return f"{prefix}-{sequence:0{USER_ID_SEQUENCE_WIDTH}d}"


def meeting_id_prefix(created_at: Optional[datetime] = None) -> str:
    timestamp = created_at or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    timestamp = timestamp.astimezone(timezone.utc)
    return f"{MEETING_ID_PREFIX}-{timestamp:%Y-%m-%d}"


def _highest_sequence(identifiers: Iterable[Optional[str]]) -> int:
    highest = 0
    for identifier in identifiers:
        if not identifier:
            continue
        try:
            highest = max(highest, int(identifier.rsplit("-", 1)[-1]))
        except ValueError:
            continue
    return highest


def _next_meeting_sequence(db: Session, date_prefix: str) -> int:
    # Highest suffix rather than a row count: deleted meetings leave gaps that
    # a count would hand out again.
    like_pattern = f"{date_prefix}-%"
    existing = db.query(Meeting.meeting_id).filter(Meeting.meeting_id.like(like_pattern))
    return _highest_sequence(row[0] for row in existing) + 1


def generate_meeting_id(db: Session, created_at: Optional[datetime] = None) -> str:
    """
    Construct a meeting business key with the format SC-YYYY-MM-DD-NNN.

    The day comes from the UTC creation timestamp and the sequence continues
    from the highest identifier already stored for that day. Two writers can
    still compute the same candidate; the unique constraint on
    ``meetings.meeting_id`` rejects the loser, which retries (see
    ``MeetingStore.insert``).
    """
    date_prefix = meeting_id_prefix(created_at)
    sequence = _next_meeting_sequence(db, date_prefix)
    if sequence > MEETING_ID_MAX_SEQUENCE:
        raise OverflowError(f"Daily meeting sequence exhausted for {date_prefix}")
    return f"{date_prefix}-{sequence:0{MEETING_ID_SEQUENCE_WIDTH}d}"


def generate_action_item_id(meeting_id: str, existing_ids: Iterable[Optional[str]]) -> str:
    """
    Generate an action item identifier local to the meeting: {meeting_id}-ACT-NNN.
    """
    prefix = f"{meeting_id}-{ACTION_ITEM_PREFIX}"
    sequence = _highest_sequence(
        identifier
        for identifier in existing_ids
        if identifier and identifier.startswith(f"{prefix}-")
    ) + 1
    return f"{prefix}-{sequence:0{ACTION_ITEM_SEQUENCE_WIDTH}d}"


def generate_archive_id() -> str:
    return f"{ARCHIVE_ID_PREFIX}-{uuid.uuid4().hex[:12].upper()}"
