"""Local store: SQLite tables plus cached article files and thumbnails.

Uses Peewee's SqliteDatabase for connections, pragmas and transactions, with
plain SQL against dataclass models. This module is the only code that
touches the database or the article directory.
"""

import logging
import sqlite3
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from peewee import IntegrityError, PeeweeException, SqliteDatabase

from .codec import ListResponse
from .errors import NotFound, StorageError
from .models import Article, Highlight, SyncStatus, now_ts

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 4

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS articles (
        id              INTEGER PRIMARY KEY,
        bookmark_id     INTEGER UNIQUE NOT NULL,
        title           TEXT NOT NULL,
        url             TEXT NOT NULL,
        html_filename   TEXT,
        html_size       INTEGER DEFAULT 0,
        progress        REAL DEFAULT 0.0,
        starred         INTEGER DEFAULT 0,
        is_archived     INTEGER DEFAULT 0,
        time_added      INTEGER NOT NULL,
        time_updated    INTEGER NOT NULL,
        time_synced     INTEGER DEFAULT 0,
        sync_status     TEXT DEFAULT 'synced',
        error_message   TEXT,
        word_count      INTEGER DEFAULT 0,
        reading_time    INTEGER DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS highlights (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        bookmark_id     INTEGER NOT NULL,
        highlight_id    INTEGER,
        text            TEXT NOT NULL,
        note            TEXT,
        position        INTEGER DEFAULT 0,
        time_created    INTEGER NOT NULL,
        time_updated    INTEGER NOT NULL,
        sync_status     TEXT NOT NULL DEFAULT 'synced'
                        CHECK (sync_status IN ('synced', 'pending', 'pending_delete')),
        UNIQUE (bookmark_id, highlight_id),
        CHECK (sync_status != 'pending' OR highlight_id IS NULL)
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_articles_time_added ON articles(time_added)",
    "CREATE INDEX IF NOT EXISTS idx_articles_archived ON articles(is_archived)",
    "CREATE INDEX IF NOT EXISTS idx_highlights_bookmark_id ON highlights(bookmark_id)",
    "CREATE INDEX IF NOT EXISTS idx_highlights_sync_status ON highlights(sync_status)",
]

HIGHLIGHT_COLUMNS = (
    "bookmark_id", "highlight_id", "text", "note", "position",
    "time_created", "time_updated", "sync_status",
)

_BOOL_FIELDS = ("starred", "is_archived")

STORAGE_ERRORS = (PeeweeException, sqlite3.Error, OSError)


def _row_to_dataclass(cls, row: Optional[dict]):
    """Convert a row dict to a dataclass instance, turning 0/1 flags into bools."""
    if row is None:
        return None
    names = {f.name for f in fields(cls)}
    converted = {}
    for key, value in row.items():
        if key not in names:
            continue
        if key in _BOOL_FIELDS and value is not None:
            value = bool(value)
        converted[key] = value
    return cls(**converted)


@dataclass
class SnapshotStats:
    """Counts from applying one pull to the store."""

    articles: int = 0
    highlights: int = 0
    deleted: int = 0


class LocalStore:
    """Persisted article/highlight replica and its reconciliation rules."""

    def __init__(self, data_dir: Path, db_name: str = "papersync.sqlite"):
        """
        Initialize the store (call ``init()`` before use).

        Args:
            data_dir: Directory holding the database, cached HTML and thumbnails
            db_name: Database file name inside data_dir, or ":memory:"
        """
        self.data_dir = Path(data_dir)
        self.articles_dir = self.data_dir / "articles"
        self.thumbnail_dir = self.articles_dir / "thumbnails"
        self.db_path = db_name if db_name == ":memory:" else str(self.data_dir / db_name)
        self.db = SqliteDatabase(
            self.db_path,
            pragmas={"journal_mode": "wal", "busy_timeout": 5000},
        )
        self.initialized = False

    # =========================================================================
    # Setup
    # =========================================================================

    def init(self) -> "LocalStore":
        """Create directories and bring the schema to SCHEMA_VERSION.

        Safe to call multiple times.
        """
        if self.initialized:
            return self

        try:
            self.thumbnail_dir.mkdir(parents=True, exist_ok=True)
            self.db.connect(reuse_if_open=True)
        except STORAGE_ERRORS as e:
            raise StorageError(f"Cannot open store at {self.data_dir}: {e}") from e

        with self._transaction("initialize schema"):
            version = self._scalar("PRAGMA user_version") or 0
            if version == SCHEMA_VERSION:
                self._create_schema()
            else:
                self._rebuild_schema(version)

        self.initialized = True
        logger.debug(f"Store initialized at {self.db_path}")
        return self

    def close(self) -> None:
        if not self.db.is_closed():
            self.db.close()

    def _create_schema(self) -> None:
        for statement in SCHEMA + INDEXES:
            self.db.execute_sql(statement)

    def _rebuild_schema(self, old_version: int) -> None:
        """Recreate the tables, carrying unsynced highlights across."""
        preserved = self._unsynced_highlight_rows()
        if old_version:
            logger.info(
                f"Upgrading store schema from version {old_version} to {SCHEMA_VERSION}, "
                f"preserving {len(preserved)} unsynced highlights"
            )

        self.db.execute_sql("DROP TABLE IF EXISTS highlights")
        self.db.execute_sql("DROP TABLE IF EXISTS articles")
        self._create_schema()

        current_time = now_ts()
        for row in preserved:
            values = {column: row.get(column) for column in HIGHLIGHT_COLUMNS}
            values["text"] = values["text"] or ""
            values["position"] = values["position"] or 0
            values["time_created"] = values["time_created"] or current_time
            values["time_updated"] = values["time_updated"] or current_time
            if values["sync_status"] == SyncStatus.PENDING:
                values["highlight_id"] = None
            self._insert_highlight_row(values)

        self.db.execute_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def _unsynced_highlight_rows(self) -> list[dict]:
        columns = {row["name"] for row in self._query("PRAGMA table_info(highlights)")}
        if "sync_status" not in columns:
            return []
        selected = ", ".join(c for c in HIGHLIGHT_COLUMNS if c in columns)
        return self._query(
            f"SELECT {selected} FROM highlights WHERE sync_status IN (?, ?) ORDER BY id",
            SyncStatus.UNSYNCED,
        )

    # =========================================================================
    # Low-level helpers
    # =========================================================================

    @contextmanager
    def _transaction(self, operation: str):
        """Run a block atomically; any database or file error becomes StorageError."""
        try:
            with self.db.atomic():
                yield
        except STORAGE_ERRORS as e:
            logger.error(f"Storage failure during {operation}: {e}")
            raise StorageError(f"Failed to {operation}: {e}") from e

    def _query(self, sql: str, params=()) -> list[dict]:
        cursor = self.db.execute_sql(sql, params)
        if cursor.description is None:
            return []
        columns = [c[0] for c in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def _scalar(self, sql: str, params=()):
        row = self.db.execute_sql(sql, params).fetchone()
        return row[0] if row else None

    def _read(self, operation: str, sql: str, params=()) -> list[dict]:
        try:
            return self._query(sql, params)
        except STORAGE_ERRORS as e:
            raise StorageError(f"Failed to {operation}: {e}") from e

    # =========================================================================
    # Article queries
    # =========================================================================

    def _upsert_article(self, article: Article) -> None:
        """Insert or fully refresh an article, keeping the cached-content columns."""
        self.db.execute_sql(
            """
            INSERT INTO articles (
                bookmark_id, title, url, progress, starred, is_archived,
                time_added, time_updated, time_synced, sync_status,
                error_message, word_count, reading_time
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(bookmark_id) DO UPDATE SET
                title = excluded.title,
                url = excluded.url,
                progress = excluded.progress,
                starred = excluded.starred,
                is_archived = excluded.is_archived,
                time_added = excluded.time_added,
                time_updated = excluded.time_updated,
                time_synced = excluded.time_synced,
                sync_status = excluded.sync_status,
                error_message = excluded.error_message,
                word_count = excluded.word_count,
                reading_time = excluded.reading_time
            """,
            (
                article.bookmark_id,
                article.title or "Untitled",
                article.url or "",
                article.progress,
                int(bool(article.starred)),
                int(bool(article.is_archived)),
                article.time_added or now_ts(),
                article.time_updated or article.time_added or now_ts(),
                article.time_synced or now_ts(),
                article.sync_status,
                article.error_message,
                article.word_count,
                article.reading_time,
            ),
        )

    def upsert_article(self, article: Article) -> None:
        """Insert or refresh one article by bookmark_id."""
        with self._transaction("store article"):
            self._upsert_article(article)
        logger.debug(f"Stored article {article.bookmark_id}: {article.title}")

    def get_article(self, bookmark_id: int) -> Optional[Article]:
        rows = self._read("get article", "SELECT * FROM articles WHERE bookmark_id = ?", (bookmark_id,))
        return _row_to_dataclass(Article, rows[0]) if rows else None

    def require_article(self, bookmark_id: int) -> Article:
        """Get an article or raise NotFound."""
        article = self.get_article(bookmark_id)
        if article is None:
            raise NotFound(f"Article {bookmark_id} not found")
        return article

    def get_articles(self, include_archived: bool = False) -> list[Article]:
        """Articles ordered newest first; archived ones only when asked."""
        where = "" if include_archived else "WHERE is_archived = 0"
        rows = self._read(
            "list articles",
            f"SELECT * FROM articles {where} ORDER BY time_added DESC, bookmark_id DESC",
        )
        return [_row_to_dataclass(Article, r) for r in rows]

    def get_unarchived_bookmark_ids(self) -> list[int]:
        rows = self._read(
            "list bookmark ids",
            "SELECT bookmark_id FROM articles WHERE is_archived = 0 ORDER BY bookmark_id",
        )
        return [r["bookmark_id"] for r in rows]

    def count_articles(self) -> int:
        try:
            return self._scalar("SELECT COUNT(*) FROM articles")
        except STORAGE_ERRORS as e:
            raise StorageError(f"Failed to count articles: {e}") from e

    def get_last_sync_time(self) -> Optional[int]:
        try:
            return self._scalar("SELECT MAX(time_synced) FROM articles")
        except STORAGE_ERRORS as e:
            raise StorageError(f"Failed to read last sync time: {e}") from e

    def _update_article(self, operation: str, bookmark_id: int, sql: str, params: tuple) -> None:
        with self._transaction(operation):
            cursor = self.db.execute_sql(sql, params + (bookmark_id,))
            if cursor.rowcount == 0:
                raise NotFound(f"Article {bookmark_id} not found")

    def update_progress(self, bookmark_id: int, progress: float) -> None:
        """Store local reading progress, clamped to [0.0, 1.0]."""
        progress = min(max(float(progress), 0.0), 1.0)
        self._update_article(
            "update progress",
            bookmark_id,
            "UPDATE articles SET progress = ?, time_updated = ? WHERE bookmark_id = ?",
            (progress, now_ts()),
        )

    def update_article_status(self, bookmark_id: int, status_type: str, value: bool) -> None:
        """Flip the optimistic ``starred`` or ``archived`` flag locally."""
        columns = {"starred": "starred", "archived": "is_archived"}
        if status_type not in columns:
            raise ValueError(f"Unknown status_type: {status_type}")
        self._update_article(
            "update article status",
            bookmark_id,
            f"UPDATE articles SET {columns[status_type]} = ?, time_updated = ? WHERE bookmark_id = ?",
            (int(bool(value)), now_ts()),
        )
        logger.debug(f"Article {bookmark_id}: {status_type} = {value}")

    def delete_article(self, bookmark_id: int) -> bool:
        """Delete an article, its highlights, cached HTML and thumbnail.

        Returns False when the article was not stored.
        """
        with self._transaction("delete article"):
            existed = self._delete_article_rows(bookmark_id)
        self._remove_article_files(bookmark_id)
        logger.debug(f"Deleted article {bookmark_id}")
        return existed

    def _delete_article_rows(self, bookmark_id: int) -> bool:
        self.db.execute_sql("DELETE FROM highlights WHERE bookmark_id = ?", (bookmark_id,))
        cursor = self.db.execute_sql("DELETE FROM articles WHERE bookmark_id = ?", (bookmark_id,))
        return cursor.rowcount > 0

    def clear_all(self) -> None:
        """Remove every article, highlight, cached file and thumbnail."""
        with self._transaction("clear store"):
            self.db.execute_sql("DELETE FROM highlights")
            self.db.execute_sql("DELETE FROM articles")

        removed = 0
        for pattern, directory in (("*.html", self.articles_dir), ("*_thumbnail.jpg", self.thumbnail_dir)):
            for path in directory.glob(pattern):
                try:
                    path.unlink()
                    removed += 1
                except OSError as e:
                    logger.warning(f"Failed to remove {path}: {e}")
        logger.debug(f"Cleared store ({removed} cached files removed)")

    # =========================================================================
    # Cached content
    # =========================================================================

    @staticmethod
    def article_filename(bookmark_id: int) -> str:
        return f"{int(bookmark_id)}.html"

    def thumbnail_path(self, bookmark_id: int) -> Path:
        return self.thumbnail_dir / f"{int(bookmark_id)}_thumbnail.jpg"

    def _write_file(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=path.parent, suffix=".tmp", delete=False) as f:
            f.write(data)
            temp_path = Path(f.name)
        temp_path.replace(path)

    def store_article_content(self, bookmark_id: int, html_content: str) -> Path:
        """
        Write an article's HTML to the cache and record its file name and size.

        Returns:
            Path of the cached file

        Raises:
            NotFound: The article is not stored locally
            StorageError: The file or the row could not be written
        """
        self.require_article(bookmark_id)
        filename = self.article_filename(bookmark_id)
        path = self.articles_dir / filename
        data = html_content.encode("utf-8")

        try:
            self._write_file(path, data)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

        try:
            self._update_article(
                "record article content",
                bookmark_id,
                "UPDATE articles SET html_filename = ?, html_size = ? WHERE bookmark_id = ?",
                (filename, len(data)),
            )
        except (StorageError, NotFound):
            path.unlink(missing_ok=True)
            raise

        logger.debug(f"Cached article {bookmark_id} ({len(data)} bytes)")
        return path

    def get_article_path_if_exists(self, bookmark_id: int) -> Optional[Path]:
        article = self.get_article(bookmark_id)
        if article is None or not article.html_filename:
            return None
        path = self.articles_dir / article.html_filename
        return path if path.is_file() else None

    def read_article_html(self, bookmark_id: int) -> Optional[str]:
        path = self.get_article_path_if_exists(bookmark_id)
        if path is None:
            return None
        return path.read_text(encoding="utf-8")

    def save_thumbnail(self, bookmark_id: int, image_data: bytes) -> Path:
        """Store already-rendered thumbnail bytes for an article."""
        path = self.thumbnail_path(bookmark_id)
        try:
            self._write_file(path, image_data)
        except OSError as e:
            raise StorageError(f"Failed to write thumbnail {path}: {e}") from e
        return path

    def get_thumbnail_path(self, bookmark_id: int) -> Optional[Path]:
        path = self.thumbnail_path(bookmark_id)
        return path if path.is_file() else None

    def _remove_article_files(self, bookmark_id: int) -> None:
        for path in (self.articles_dir / self.article_filename(bookmark_id), self.thumbnail_path(bookmark_id)):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove {path}: {e}")

    # =========================================================================
    # Highlight queries
    # =========================================================================

    def _insert_highlight_row(self, values: dict) -> int:
        cursor = self.db.execute_sql(
            f"INSERT INTO highlights ({', '.join(HIGHLIGHT_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in HIGHLIGHT_COLUMNS)})",
            tuple(values[c] for c in HIGHLIGHT_COLUMNS),
        )
        return cursor.lastrowid

    def _merge_highlights(self, bookmark_id: int, highlights: Optional[list[Highlight]]) -> int:
        """Replace the synced highlights of one article with a server snapshot.

        Rows in ``pending`` or ``pending_delete`` are left alone, and server
        highlights the user is deleting locally are not re-imported.
        Returns the number of rows inserted.
        """
        self.db.execute_sql(
            "DELETE FROM highlights WHERE bookmark_id = ? AND sync_status = ?",
            (bookmark_id, SyncStatus.SYNCED),
        )

        skip_ids = {
            r["highlight_id"]
            for r in self._query(
                "SELECT highlight_id FROM highlights WHERE bookmark_id = ? AND sync_status = ? "
                "AND highlight_id IS NOT NULL",
                (bookmark_id, SyncStatus.PENDING_DELETE),
            )
        }

        current_time = now_ts()
        inserted = 0
        for highlight in highlights or []:
            if highlight.highlight_id is None:
                logger.warning(f"Skipping server highlight without id for article {bookmark_id}")
                continue
            if highlight.highlight_id in skip_ids:
                logger.debug(f"Not restoring highlight {highlight.highlight_id}: pending delete")
                continue
            self._insert_highlight_row({
                "bookmark_id": bookmark_id,
                "highlight_id": highlight.highlight_id,
                "text": highlight.text or "",
                "note": highlight.note,
                "position": highlight.position or 0,
                "time_created": highlight.time_created or current_time,
                "time_updated": current_time,
                "sync_status": SyncStatus.SYNCED,
            })
            # a snapshot listing the same id twice must not violate UNIQUE
            skip_ids.add(highlight.highlight_id)
            inserted += 1
        return inserted

    def store_highlights(self, bookmark_id: int, highlights: Optional[list[Highlight]]) -> int:
        """
        Merge the server's highlights for one article into the store.

        Args:
            bookmark_id: Owning article
            highlights: Server highlights; None and [] both mean "none on the server"

        Returns:
            Number of synced rows inserted
        """
        bookmark_id = int(bookmark_id)
        with self._transaction("store highlights"):
            inserted = self._merge_highlights(bookmark_id, highlights)
        logger.debug(f"Stored {inserted} highlights for article {bookmark_id}")
        return inserted

    def apply_snapshot(self, snapshot: ListResponse) -> SnapshotStats:
        """
        Apply one incremental pull atomically.

        Articles are upserted, every returned article (and every article
        named by a returned highlight) gets the highlight merge, and
        deleted ids are purged. Cached files of deleted articles are removed
        after the transaction commits.
        """
        stats = SnapshotStats()
        grouped: dict[int, list[Highlight]] = {a.bookmark_id: [] for a in snapshot.articles}
        for highlight in snapshot.highlights:
            grouped.setdefault(highlight.bookmark_id, []).append(highlight)

        deleted_ids = []
        with self._transaction("apply sync snapshot"):
            for article in snapshot.articles:
                self._upsert_article(article)
                stats.articles += 1
            for bookmark_id, highlights in grouped.items():
                stats.highlights += self._merge_highlights(bookmark_id, highlights)
            for bookmark_id in snapshot.delete_ids:
                if self._delete_article_rows(bookmark_id):
                    stats.deleted += 1
                deleted_ids.append(bookmark_id)

        for bookmark_id in deleted_ids:
            self._remove_article_files(bookmark_id)

        logger.debug(
            f"Snapshot applied: {stats.articles} articles, {stats.highlights} highlights, "
            f"{stats.deleted} deleted"
        )
        return stats

    def get_highlights(self, bookmark_id: int) -> list[Highlight]:
        """Visible highlights of an article (pending deletes hidden), by position."""
        rows = self._read(
            "get highlights",
            "SELECT * FROM highlights WHERE bookmark_id = ? AND sync_status != ? ORDER BY position, id",
            (bookmark_id, SyncStatus.PENDING_DELETE),
        )
        return [_row_to_dataclass(Highlight, r) for r in rows]

    def get_all_highlights(self) -> list[Highlight]:
        rows = self._read(
            "list highlights",
            "SELECT * FROM highlights ORDER BY bookmark_id, position, id",
        )
        return [_row_to_dataclass(Highlight, r) for r in rows]

    def get_highlight(self, local_id: int) -> Optional[Highlight]:
        rows = self._read("get highlight", "SELECT * FROM highlights WHERE id = ?", (local_id,))
        return _row_to_dataclass(Highlight, rows[0]) if rows else None

    def get_pending_highlights(self) -> list[Highlight]:
        """Highlights awaiting a push (``pending`` or ``pending_delete``), oldest first."""
        rows = self._read(
            "list pending highlights",
            "SELECT * FROM highlights WHERE sync_status IN (?, ?) ORDER BY id",
            SyncStatus.UNSYNCED,
        )
        return [_row_to_dataclass(Highlight, r) for r in rows]

    def save_pending_highlight(self, highlight: Highlight) -> Highlight:
        """Insert a locally created highlight as ``pending``; returns it with its local id."""
        bookmark_id = int(highlight.bookmark_id or 0)
        if bookmark_id <= 0:
            raise ValueError("Highlight needs a bookmark_id")
        if not highlight.text:
            raise ValueError("Highlight needs text")

        current_time = now_ts()
        values = {
            "bookmark_id": bookmark_id,
            "highlight_id": None,
            "text": str(highlight.text),
            "note": highlight.note,
            "position": int(highlight.position or 0),
            "time_created": highlight.time_created or current_time,
            "time_updated": highlight.time_updated or current_time,
            "sync_status": SyncStatus.PENDING,
        }
        with self._transaction("save pending highlight"):
            local_id = self._insert_highlight_row(values)
        logger.debug(f"Saved pending highlight {local_id} for article {bookmark_id}")
        return Highlight(id=local_id, **values)

    def _require_highlight(self, local_id: int) -> Highlight:
        highlight = self.get_highlight(local_id)
        if highlight is None:
            raise NotFound(f"Highlight {local_id} not found")
        return highlight

    def mark_highlight_synced(self, local_id: int, highlight_id: int) -> None:
        """Attach the server id to a pushed highlight and mark it ``synced``.

        If the server id is already stored for that article the pending row
        is redundant and is dropped.
        """
        with self._transaction("mark highlight synced"):
            self._require_highlight(local_id)
            try:
                with self.db.atomic():
                    self.db.execute_sql(
                        "UPDATE highlights SET highlight_id = ?, sync_status = ?, time_updated = ? WHERE id = ?",
                        (highlight_id, SyncStatus.SYNCED, now_ts(), local_id),
                    )
            except IntegrityError:
                logger.debug(f"Highlight {highlight_id} already stored; dropping local row {local_id}")
                self.db.execute_sql("DELETE FROM highlights WHERE id = ?", (local_id,))

    def mark_highlight_pending_delete(self, local_id: int) -> None:
        with self._transaction("mark highlight pending delete"):
            cursor = self.db.execute_sql(
                "UPDATE highlights SET sync_status = ?, time_updated = ? WHERE id = ?",
                (SyncStatus.PENDING_DELETE, now_ts(), local_id),
            )
            if cursor.rowcount == 0:
                raise NotFound(f"Highlight {local_id} not found")
        logger.debug(f"Marked highlight {local_id} pending delete")

    def delete_highlight_by_id(self, local_id: int) -> bool:
        """Physically remove one highlight row."""
        with self._transaction("delete highlight"):
            cursor = self.db.execute_sql("DELETE FROM highlights WHERE id = ?", (local_id,))
        return cursor.rowcount > 0

    def remove_highlight(self, local_id: int) -> Optional[str]:
        """
        Delete a highlight the way the user expects.

        A highlight the server never saw is removed outright; one with a
        server id becomes ``pending_delete`` until the remote delete succeeds.

        Returns:
            The row's new sync_status, or None when it was removed
        """
        with self._transaction("remove highlight"):
            highlight = self._require_highlight(local_id)
            if highlight.highlight_id is None:
                self.db.execute_sql("DELETE FROM highlights WHERE id = ?", (local_id,))
                new_status = None
            else:
                self.db.execute_sql(
                    "UPDATE highlights SET sync_status = ?, time_updated = ? WHERE id = ?",
                    (SyncStatus.PENDING_DELETE, now_ts(), local_id),
                )
                new_status = SyncStatus.PENDING_DELETE
        logger.debug(f"Removed highlight {local_id} (status now {new_status})")
        return new_status

    def delete_highlights(self, bookmark_id: int) -> int:
        """Remove every highlight row of an article."""
        with self._transaction("delete highlights"):
            cursor = self.db.execute_sql("DELETE FROM highlights WHERE bookmark_id = ?", (bookmark_id,))
        return cursor.rowcount
