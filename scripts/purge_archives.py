"""Delete archive records whose retention period has elapsed. Run from cron."""

from app.database import SessionLocal
import app.models  # noqa: F401
from app.data.archive_store import ArchiveStore
from app.utils.logging_config import setup_logging


def purge_archives() -> int:
    db = SessionLocal()
    try:
        purged = ArchiveStore(db).purge_expired()
    finally:
        db.close()
    print(f"Purged {purged} expired archive record(s).")
    return purged


if __name__ == "__main__":
    setup_logging()
    purge_archives()
