import datetime as dt
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field

from .meeting import MeetingResponse, MonthlyCount


class ArchiveRecordResponse(BaseModel):
    archive_id: str
    item_id: str
    item_type: str
    archived_by: str
    archived_at: dt.datetime
    reason: Optional[str] = None
    retention_days: int
    scheduled_for_deletion: dt.datetime
    restored: bool = False
    restored_at: Optional[dt.datetime] = None
    restored_by: Optional[str] = None
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("archive_metadata", "metadata"),
    )
    search_index: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class ArchiveStatistics(BaseModel):
    total: int
    by_type: Dict[str, int]
    restored: int
    monthly: List[MonthlyCount]
    storage_bytes: int
    pending_deletion: int


class ArchiveRestoreResponse(BaseModel):
    message: str
    archive: ArchiveRecordResponse
    meeting: MeetingResponse
