"""Bounded revision history kept inside each meeting record."""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

DEFAULT_VERSION_HISTORY_LIMIT = 5


def build_version_entry(
    snapshot: Dict[str, Any],
    version: int,
    updated_at: datetime,
    updated_by: Optional[str],
) -> Dict[str, Any]:
    return {
        "version": version,
        "data": snapshot,
        "updated_at": updated_at.isoformat(),
        "updated_by": updated_by,
    }


def push_version(
    history: Optional[Sequence[Dict[str, Any]]],
    snapshot: Dict[str, Any],
    version: int,
    updated_at: datetime,
    updated_by: Optional[str],
    limit: int = DEFAULT_VERSION_HISTORY_LIMIT,
) -> List[Dict[str, Any]]:
    """
    Return a new history list with the snapshot appended, oldest entries evicted.

    A fresh list is returned so SQLAlchemy sees the JSON column change; in-place
    mutation of the loaded list would not be flushed.
    """
    if limit < 1:
        raise ValueError("Version history limit must be positive")
    entries = list(history or [])
    entries.append(build_version_entry(snapshot, version, updated_at, updated_by))
    return entries[-limit:]
