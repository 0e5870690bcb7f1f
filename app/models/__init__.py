# Import models to make them accessible via app.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .user import User
from .meeting import Meeting
from .archive import ArchiveRecord

__all__ = [
    "User",
    "Meeting",
    "ArchiveRecord",
]
