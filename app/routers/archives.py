import logging

from fastapi import APIRouter, Depends

from app.auth.auth import check_permission, get_current_active_user
from app.data.meeting_manager import MeetingManager, get_meeting_manager
from app.exceptions import NotFoundError
from app.schemas.archive import (
    ArchiveRecordResponse,
    ArchiveRestoreResponse,
    ArchiveStatistics,
)
from app.schemas.meeting import MeetingResponse
from app.schemas.schemas import Permission
from app.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/archives", tags=["archives"])


@router.get("/stats", response_model=ArchiveStatistics)
async def archive_statistics(
    _: bool = Depends(check_permission(Permission.MANAGE_ARCHIVES)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return manager.archive_store.statistics()


@router.get("/{archive_id}", response_model=ArchiveRecordResponse)
async def get_archive_record(
    archive_id: str,
    _: bool = Depends(check_permission(Permission.MANAGE_ARCHIVES)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    record = manager.archive_store.get(archive_id)
    if record is None:
        raise NotFoundError("Archive record not found", details={"archive_id": archive_id})
    return ArchiveRecordResponse.model_validate(record)


@router.post("/{archive_id}/restore", response_model=ArchiveRestoreResponse)
async def restore_archived_meeting(
    archive_id: str,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.MANAGE_ARCHIVES)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting = manager.restore_deleted_meeting(archive_id, current_user)
    return ArchiveRestoreResponse(
        message="Meeting restored from archive",
        archive=ArchiveRecordResponse.model_validate(manager.archive_store.get(archive_id)),
        meeting=MeetingResponse.model_validate(meeting),
    )
