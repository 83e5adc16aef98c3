"""Data models for papersync.

Dataclass definitions mirrored by the SQLite tables and the durable queue.
"""

import time
from dataclasses import dataclass, field
from typing import Optional


class SyncStatus:
    """Per-row highlight states."""
    SYNCED = "synced"
    PENDING = "pending"
    PENDING_DELETE = "pending_delete"

    UNSYNCED = (PENDING, PENDING_DELETE)


@dataclass
class Article:
    """One remote bookmark mirrored locally."""
    bookmark_id: int = 0
    title: str = ""
    url: str = ""
    html_filename: Optional[str] = None
    html_size: int = 0
    progress: float = 0.0
    starred: bool = False
    is_archived: bool = False
    time_added: int = 0
    time_updated: int = 0
    time_synced: int = 0
    sync_status: str = SyncStatus.SYNCED
    error_message: Optional[str] = None
    word_count: int = 0
    reading_time: int = 0
    id: Optional[int] = None


@dataclass
class Highlight:
    """A marked passage inside an article."""
    bookmark_id: int = 0
    text: str = ""
    note: Optional[str] = None
    position: int = 0  # occurrence index of text in the article, not a char offset
    highlight_id: Optional[int] = None  # None until the server accepts it
    time_created: int = 0
    time_updated: int = 0
    sync_status: str = SyncStatus.PENDING
    id: Optional[int] = None


@dataclass
class QueuedRequest:
    """A mutating call deferred while offline.

    ``params`` holds only business parameters; OAuth fields are regenerated
    when the request is replayed.
    """
    endpoint: str = ""
    url: str = ""
    params: dict[str, str] = field(default_factory=dict)
    timestamp: int = 0


def now_ts() -> int:
    """Return the current Unix time as an integer."""
    return int(time.time())


@dataclass
class Credentials:
    """Per-user OAuth access token obtained at login."""
    token: str = ""
    token_secret: str = ""
    username: Optional[str] = None
