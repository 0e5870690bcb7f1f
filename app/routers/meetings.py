from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.auth.auth import check_permission, get_current_active_user, get_user_role, has_permission
from app.data.meeting_manager import DispatchResult, MeetingManager, get_meeting_manager
from app.models.user import UserRole
from app.schemas.meeting import (
    ActionItemCompletion,
    AttendeeUpsert,
    CalendarEvent,
    DeleteResponse,
    DispatchResponse,
    MeetingCreate,
    MeetingListResponse,
    MeetingResponse,
    MeetingStatistics,
    MeetingStatus,
    MeetingType,
    MeetingUpdate,
    MinutesUpdate,
    NotificationOutcome,
    PublishResponse,
    VersionEntry,
)
from app.schemas.schemas import Permission
from app.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/meetings", tags=["meetings"])


def _outcomes(result: DispatchResult) -> List[NotificationOutcome]:
    return [NotificationOutcome.model_validate(item) for item in result.results]


# --- Collection routes (registered before /{meeting_id}) ---


@router.get("", response_model=MeetingListResponse)
async def list_meetings(
    type: Optional[MeetingType] = None,
    meeting_status: Optional[MeetingStatus] = Query(None, alias="status"),
    archived: Optional[bool] = False,
    published: Optional[bool] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort: str = Query("-date", pattern=r"^-?(date|start_time|created_at|updated_at|title|meeting_id)$"),
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    items, total, pages = manager.list_meetings(
        page=page,
        limit=limit,
        sort=sort,
        type=type.value if type else None,
        status=meeting_status.value if meeting_status else None,
        archived=archived,
        published=published,
        date_from=date_from,
        date_to=date_to,
    )
    return MeetingListResponse(
        items=[MeetingResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        pages=pages,
    )


@router.post("", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    payload: MeetingCreate,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.CREATE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting = manager.create_meeting(payload, current_user)
    return MeetingResponse.model_validate(meeting)


@router.get("/stats", response_model=MeetingStatistics)
async def meeting_statistics(
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return manager.get_statistics()


@router.get("/calendar", response_model=List[CalendarEvent])
async def calendar_events(
    start: date,
    end: date,
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return manager.get_calendar_events(start, end)


@router.get("/upcoming", response_model=List[MeetingResponse])
async def upcoming_meetings(
    limit: Optional[int] = Query(None, ge=1, le=100),
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return [MeetingResponse.model_validate(m) for m in manager.get_upcoming(limit)]


@router.get("/recent", response_model=List[MeetingResponse])
async def recent_meetings(
    limit: Optional[int] = Query(None, ge=1, le=100),
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return [MeetingResponse.model_validate(m) for m in manager.get_recent(limit)]


# --- Single meeting routes ---


@router.get("/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: str,
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return MeetingResponse.model_validate(manager.get_meeting(meeting_id))


@router.get("/{meeting_id}/versions", response_model=List[VersionEntry])
async def get_meeting_versions(
    meeting_id: str,
    _: bool = Depends(check_permission(Permission.VIEW_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    return manager.get_versions(meeting_id)


@router.put("/{meeting_id}", response_model=MeetingResponse)
async def update_meeting(
    meeting_id: str,
    patch: MeetingUpdate,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.UPDATE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    manager.ensure_can_modify(manager.get_meeting(meeting_id), current_user)
    meeting = manager.update_meeting(meeting_id, patch, current_user)
    return MeetingResponse.model_validate(meeting)


@router.put("/{meeting_id}/minutes", response_model=MeetingResponse)
async def update_minutes(
    meeting_id: str,
    patch: MinutesUpdate,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.RECORD_MINUTES)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting = manager.update_minutes(meeting_id, patch, current_user)
    return MeetingResponse.model_validate(meeting)


@router.post("/{meeting_id}/publish", response_model=PublishResponse)
async def publish_meeting(
    meeting_id: str,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.PUBLISH_MINUTES)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    manager.ensure_can_modify(manager.get_meeting(meeting_id), current_user)
    result = await manager.publish_meeting(meeting_id, current_user)
    return PublishResponse(
        meeting=MeetingResponse.model_validate(result.meeting),
        notified=result.delivered,
        failed=result.failed,
        results=_outcomes(result),
    )


@router.post("/{meeting_id}/archive", response_model=MeetingResponse)
async def archive_meeting(
    meeting_id: str,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.ARCHIVE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting = manager.archive_meeting(meeting_id, current_user)
    return MeetingResponse.model_validate(meeting)


@router.post("/{meeting_id}/restore", response_model=MeetingResponse)
async def restore_meeting(
    meeting_id: str,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.ARCHIVE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    meeting = manager.restore_meeting(meeting_id, current_user)
    return MeetingResponse.model_validate(meeting)


@router.delete("/{meeting_id}", response_model=DeleteResponse)
async def delete_meeting(
    meeting_id: str,
    reason: Optional[str] = Query(None, max_length=500),
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.DELETE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    archive_id = manager.delete_meeting(meeting_id, current_user, reason=reason)
    return DeleteResponse(
        message="Meeting deleted and archived successfully", archive_id=archive_id
    )


@router.post("/{meeting_id}/attendees", response_model=MeetingResponse)
async def upsert_attendee(
    meeting_id: str,
    payload: AttendeeUpsert,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.UPDATE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    manager.ensure_can_modify(manager.get_meeting(meeting_id), current_user)
    meeting = manager.add_attendee(
        meeting_id,
        payload.user_id,
        status=payload.status,
        time=payload.time,
        notes=payload.notes,
        actor=current_user,
    )
    return MeetingResponse.model_validate(meeting)


@router.post(
    "/{meeting_id}/action-items/{action_item_id}/complete",
    response_model=MeetingResponse,
)
async def complete_action_item(
    meeting_id: str,
    action_item_id: str,
    payload: Optional[ActionItemCompletion] = None,
    current_user: UserSchema = Depends(get_current_active_user),
    user_role: UserRole = Depends(get_user_role),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    # Minute takers may close any item; other members only their own.
    if not has_permission(user_role, Permission.RECORD_MINUTES):
        meeting = manager.get_meeting(meeting_id)
        assignees = {
            item.get("assignee_id")
            for item in (meeting.minutes or {}).get("action_items") or []
            if item.get("action_item_id") == action_item_id
        }
        if current_user.user_id not in assignees:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the assignee or a minutes recorder can complete this action item",
            )
    meeting = manager.complete_action_item(
        meeting_id,
        action_item_id,
        completion_date=payload.completion_date if payload else None,
        actor=current_user,
    )
    return MeetingResponse.model_validate(meeting)


@router.post("/{meeting_id}/reminders", response_model=DispatchResponse)
async def send_reminders(
    meeting_id: str,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.UPDATE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    manager.ensure_can_modify(manager.get_meeting(meeting_id), current_user)
    result = await manager.send_reminders(meeting_id, current_user)
    return DispatchResponse(
        meeting_id=result.meeting.meeting_id,
        sent=result.delivered,
        failed=result.failed,
        results=_outcomes(result),
    )


@router.post("/{meeting_id}/invitations", response_model=DispatchResponse)
async def send_invitations(
    meeting_id: str,
    current_user: UserSchema = Depends(get_current_active_user),
    _: bool = Depends(check_permission(Permission.UPDATE_MEETING)),
    manager: MeetingManager = Depends(get_meeting_manager),
):
    manager.ensure_can_modify(manager.get_meeting(meeting_id), current_user)
    result = await manager.send_invitations(meeting_id, current_user)
    return DispatchResponse(
        meeting_id=result.meeting.meeting_id,
        sent=result.delivered,
        failed=result.failed,
        results=_outcomes(result),
    )
