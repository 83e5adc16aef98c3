"""One full sync cycle: drain the queue, push highlights, pull and merge."""

import logging
import threading
from dataclasses import dataclass, field

from .api import ApiClient
from .errors import PaperSyncError, StorageError, SyncInProgress
from .models import Credentials, SyncStatus
from .offline_queue import OfflineQueue, QueueError
from .store import LocalStore

logger = logging.getLogger(__name__)


@dataclass
class PushFailure:
    """A highlight push that failed and stays in its pending state."""

    local_id: int
    bookmark_id: int
    action: str
    error: str


@dataclass
class SyncReport:
    """Outcome of one cycle. Only a pull failure marks the cycle failed."""

    queue_errors: list[QueueError] = field(default_factory=list)
    push_failures: list[PushFailure] = field(default_factory=list)
    highlights_created: int = 0
    highlights_deleted: int = 0
    pull_ok: bool = False
    pull_error: str | None = None
    articles_received: int = 0
    highlights_received: int = 0
    articles_deleted: int = 0

    @property
    def success(self) -> bool:
        return self.pull_ok

    @property
    def error_count(self) -> int:
        return len(self.queue_errors) + len(self.push_failures) + (0 if self.pull_ok else 1)


class SyncCoordinator:
    """Runs sync cycles one at a time against a single store."""

    def __init__(
        self,
        api: ApiClient,
        store: LocalStore,
        queue: OfflineQueue,
        list_limit: int = 200,
    ):
        self.api = api
        self.store = store
        self.queue = queue
        self.list_limit = list_limit
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def run(self, credentials: Credentials) -> SyncReport:
        """
        Run one complete cycle.

        Each stage commits on its own; a failed pull does not undo the
        queue drain or the highlight pushes that already happened.

        Raises:
            SyncInProgress: Another cycle is still running
            StorageError: The store could not be read or written
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgress("A sync is already running")

        try:
            report = SyncReport()
            logger.info("Sync started")

            report.queue_errors = self.queue.drain()
            if report.queue_errors:
                logger.warning(f"{len(report.queue_errors)} queued requests still pending")

            self._push_created(credentials, report)
            self._push_deleted(credentials, report)
            self._pull(credentials, report)

            logger.info(
                f"Sync finished: {report.articles_received} articles, "
                f"{report.highlights_received} highlights, {report.articles_deleted} deleted, "
                f"{report.error_count} errors"
            )
            return report
        finally:
            self._lock.release()

    def _push_created(self, credentials: Credentials, report: SyncReport) -> None:
        for highlight in self.store.get_pending_highlights():
            if highlight.sync_status != SyncStatus.PENDING:
                continue
            try:
                highlight_id = self.api.create_highlight(credentials, highlight)
            except StorageError:
                raise
            except PaperSyncError as e:
                logger.warning(f"Failed to push highlight {highlight.id}: {e}")
                report.push_failures.append(
                    PushFailure(highlight.id, highlight.bookmark_id, "create", str(e))
                )
                continue

            self.store.mark_highlight_synced(highlight.id, highlight_id)
            report.highlights_created += 1
            logger.debug(f"Pushed highlight {highlight.id} as {highlight_id}")

    def _push_deleted(self, credentials: Credentials, report: SyncReport) -> None:
        for highlight in self.store.get_pending_highlights():
            if highlight.sync_status != SyncStatus.PENDING_DELETE or highlight.highlight_id is None:
                continue
            try:
                self.api.delete_highlight(credentials, highlight.highlight_id)
            except StorageError:
                raise
            except PaperSyncError as e:
                logger.warning(f"Failed to delete highlight {highlight.highlight_id}: {e}")
                report.push_failures.append(
                    PushFailure(highlight.id, highlight.bookmark_id, "delete", str(e))
                )
                continue

            self.store.delete_highlight_by_id(highlight.id)
            report.highlights_deleted += 1
            logger.debug(f"Deleted highlight {highlight.highlight_id} remotely")

    def _pull(self, credentials: Credentials, report: SyncReport) -> None:
        have = self.store.get_unarchived_bookmark_ids()
        try:
            snapshot = self.api.list_bookmarks(credentials, have=have, limit=self.list_limit)
        except StorageError:
            raise
        except PaperSyncError as e:
            logger.error(f"Pull failed: {e}")
            report.pull_error = str(e)
            return

        stats = self.store.apply_snapshot(snapshot)
        report.pull_ok = True
        report.articles_received = stats.articles
        report.highlights_received = stats.highlights
        report.articles_deleted = stats.deleted
