from collections import Counter
from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config.loader import get_archive_settings
from ..exceptions import InvalidStateError, NotFoundError
from ..models.archive import ArchiveRecord
from ..utils.identifiers import generate_archive_id

logger = logging.getLogger(__name__)

SEARCH_INDEX_FIELDS = ("title", "type", "venue", "date", "objective")
DEFAULT_DELETION_REASON = "Manual deletion by controller"
STATISTICS_MONTHS = 12


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def snapshot_size(snapshot: Dict[str, Any]) -> int:
    """Byte length of the snapshot serialised as JSON."""
    return len(json.dumps(snapshot, default=str).encode("utf-8"))


class ArchiveStore:
    """Write-once store for removed records, kept for the retention period."""

    def __init__(self, db: Session, retention_days: Optional[int] = None):
        self.db = db
        self.retention_days = retention_days or get_archive_settings()["retention_days"]

    def write(
        self,
        item_id: str,
        item_type: str,
        snapshot: Dict[str, Any],
        archived_by: str,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        archived_at: Optional[datetime] = None,
    ) -> str:
        """
        Persist the snapshot and return its archive id.

        Commits before returning so that callers can rely on the archive row
        existing before they remove the original.
        """
        archived_at = archived_at or datetime.now(timezone.utc)
        record = ArchiveRecord(
            archive_id=generate_archive_id(),
            item_id=item_id,
            item_type=item_type,
            original_data=snapshot,
            archived_by=archived_by,
            archived_at=archived_at,
            reason=reason or DEFAULT_DELETION_REASON,
            retention_days=self.retention_days,
            scheduled_for_deletion=archived_at + timedelta(days=self.retention_days),
            archive_metadata={"size": snapshot_size(snapshot), **(metadata or {})},
            search_index={
                field: snapshot.get(field)
                for field in SEARCH_INDEX_FIELDS
                if snapshot.get(field) is not None
            },
        )
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to archive %s %s", item_type, item_id)
            raise
        logger.info(
            "Archived %s %s as %s (by %s)",
            item_type,
            item_id,
            record.archive_id,
            archived_by,
        )
        return record.archive_id

    def get(self, archive_id: str) -> Optional[ArchiveRecord]:
        return (
            self.db.query(ArchiveRecord)
            .filter(ArchiveRecord.archive_id == archive_id)
            .one_or_none()
        )

    def list_for_item(self, item_id: str) -> List[ArchiveRecord]:
        return (
            self.db.query(ArchiveRecord)
            .filter(ArchiveRecord.item_id == item_id)
            .order_by(ArchiveRecord.archived_at.desc())
            .all()
        )

    def mark_restored(
        self,
        archive_id: str,
        actor_id: str,
        restored_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> ArchiveRecord:
        """
        Flag an archive record as restored so the retention purge keeps it.

        With ``commit=False`` the change is left pending for the caller's
        transaction.
        """
        record = self.get(archive_id)
        if record is None:
            raise NotFoundError("Archive record not found", details={"archive_id": archive_id})
        if record.restored:
            raise InvalidStateError(
                "Archive record has already been restored",
                details={"archive_id": archive_id},
            )
        record.restored = True
        record.restored_at = restored_at or datetime.now(timezone.utc)
        record.restored_by = actor_id
        if commit:
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception("Failed to mark archive %s restored", archive_id)
                raise
            logger.info("Archive %s marked restored by %s", archive_id, actor_id)
        return record

    def statistics(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts by type, per-month volume, stored bytes and expired records."""
        now = _ensure_aware(now) or datetime.now(timezone.utc)
        records = self.db.query(ArchiveRecord).all()
        by_type = Counter(record.item_type for record in records)
        monthly = Counter(
            f"{_ensure_aware(record.archived_at):%Y-%m}"
            for record in records
            if record.archived_at is not None
        )
        return {
            "total": len(records),
            "by_type": dict(by_type),
            "restored": sum(1 for record in records if record.restored),
            "monthly": [
                {"month": month, "count": monthly[month]}
                for month in sorted(monthly, reverse=True)[:STATISTICS_MONTHS]
            ],
            "storage_bytes": sum(
                int((record.archive_metadata or {}).get("size") or 0)
                for record in records
            ),
            "pending_deletion": sum(
                1
                for record in records
                if not record.restored
                and _ensure_aware(record.scheduled_for_deletion) <= now
            ),
        }

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete unrestored archives whose retention period has elapsed."""
        now = _ensure_aware(now) or datetime.now(timezone.utc)
        candidates = (
            self.db.query(ArchiveRecord)
            .filter(ArchiveRecord.restored.is_(False))
            .all()
        )
        expired = [
            record
            for record in candidates
            if _ensure_aware(record.scheduled_for_deletion) <= now
        ]
        if not expired:
            return 0
        try:
            for record in expired:
                self.db.delete(record)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Failed to purge expired archives")
            raise
        logger.info("Purged %s expired archive records", len(expired))
        return len(expired)
