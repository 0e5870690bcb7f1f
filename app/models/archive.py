from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.sql import func

from ..database import Base


class ArchiveRecord(Base):
    """Write-once snapshot of a removed entity, kept for the retention period."""

    __tablename__ = "archives"

    archive_id = Column(String(20), primary_key=True)
    item_id = Column(String(64), nullable=False, index=True)
    item_type = Column(String(20), nullable=False, index=True)
    original_data = Column(JSON, nullable=False)
    archived_by = Column(String(20), nullable=False)
    archived_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reason = Column(Text, nullable=True)
    retention_days = Column(Integer, nullable=False, default=365)
    scheduled_for_deletion = Column(DateTime(timezone=True), nullable=False, index=True)
    restored = Column(Boolean, nullable=False, default=False)
    restored_at = Column(DateTime(timezone=True), nullable=True)
    restored_by = Column(String(20), nullable=True)
    # "metadata" is reserved on declarative classes.
    archive_metadata = Column("metadata", JSON, nullable=False, default=dict)
    search_index = Column(JSON, nullable=False, default=dict)
