from datetime import date
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.auth.auth import check_permission
from app.data.member_manager import MemberManager, get_member_manager
from app.schemas.meeting import ActionItemStatus
from app.schemas.member import MemberAttendance, MemberStatistics, MemberTasks, TopPerformer
from app.schemas.schemas import Permission
from app.schemas.user import User as UserSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/members", tags=["members"])


@router.get("/stats", response_model=MemberStatistics)
async def member_statistics(
    _: bool = Depends(check_permission(Permission.VIEW_MEMBERS)),
    manager: MemberManager = Depends(get_member_manager),
):
    return manager.get_statistics()


@router.get("/top-performers", response_model=List[TopPerformer])
async def top_performers(
    limit: int = Query(5, ge=1, le=50),
    _: bool = Depends(check_permission(Permission.VIEW_MEMBERS)),
    manager: MemberManager = Depends(get_member_manager),
):
    return manager.get_top_performers(limit)


@router.get("/{user_id}", response_model=UserSchema)
async def get_member(
    user_id: str,
    _: bool = Depends(check_permission(Permission.VIEW_MEMBERS)),
    manager: MemberManager = Depends(get_member_manager),
):
    return UserSchema.model_validate(manager.get_member(user_id))


@router.get("/{user_id}/attendance", response_model=MemberAttendance)
async def member_attendance(
    user_id: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    _: bool = Depends(check_permission(Permission.VIEW_MEMBERS)),
    manager: MemberManager = Depends(get_member_manager),
):
    return manager.get_attendance(user_id, start=start, end=end)


@router.get("/{user_id}/tasks", response_model=MemberTasks)
async def member_tasks(
    user_id: str,
    task_status: Optional[ActionItemStatus] = Query(None, alias="status"),
    _: bool = Depends(check_permission(Permission.VIEW_MEMBERS)),
    manager: MemberManager = Depends(get_member_manager),
):
    return manager.get_tasks(user_id, status=task_status.value if task_status else None)
