"""papersync - offline-first client for a read-it-later service."""

from .config import Config, load_config
from .engine import Engine
from .errors import (
    AuthenticationFailed,
    AuthenticationRequired,
    NetworkError,
    NetworkUnavailable,
    NotFound,
    PaperSyncError,
    RemoteRejected,
    StorageError,
    SyncInProgress,
)
from .models import Article, Credentials, Highlight, QueuedRequest, SyncStatus

__version__ = "0.1.0"

__all__ = [
    "Article",
    "AuthenticationFailed",
    "AuthenticationRequired",
    "Config",
    "Credentials",
    "Engine",
    "Highlight",
    "NetworkError",
    "NetworkUnavailable",
    "NotFound",
    "PaperSyncError",
    "QueuedRequest",
    "RemoteRejected",
    "StorageError",
    "SyncInProgress",
    "SyncStatus",
    "load_config",
]
