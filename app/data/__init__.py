"""
Data access layer: the meeting and archive stores plus the managers built on them.
"""

from .user_manager import UserManager
from .meeting_store import MeetingStore
from .archive_store import ArchiveStore
from .meeting_manager import MeetingManager
from .member_manager import MemberManager

__all__ = ["UserManager", "MeetingStore", "ArchiveStore", "MeetingManager", "MemberManager"]
