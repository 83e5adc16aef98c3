"""Tests for the local store and highlight reconciliation."""

import pytest
from peewee import SqliteDatabase

from papersync.codec import ListResponse, parse_article
from papersync.errors import NotFound, StorageError
from papersync.models import Article, Highlight, SyncStatus
from papersync.store import SCHEMA_VERSION, LocalStore

from conftest import bookmark_item

BOOKMARK_ID = 12345


def make_article(bookmark_id, **overrides):
    return parse_article(bookmark_item(bookmark_id, **overrides))


def pending(text="local note", position=0, bookmark_id=BOOKMARK_ID):
    return Highlight(bookmark_id=bookmark_id, text=text, position=position)


class TestInit:
    """Tests for store setup."""

    def test_creates_directories(self, store):
        assert store.articles_dir.is_dir()
        assert store.thumbnail_dir.is_dir()

    def test_schema_version_recorded(self, store):
        assert store._scalar("PRAGMA user_version") == SCHEMA_VERSION

    def test_init_idempotent(self, store):
        store.upsert_article(make_article(1))
        store.initialized = False
        store.init()
        assert store.get_article(1) is not None

    def test_reopen_keeps_data(self, tmp_path):
        first = LocalStore(tmp_path / "data").init()
        first.upsert_article(make_article(1))
        first.close()

        second = LocalStore(tmp_path / "data").init()
        assert second.get_article(1).title == "An article"
        second.close()

    def test_upgrade_preserves_unsynced_highlights(self, tmp_path):
        """An older schema is rebuilt but pending work survives."""
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        old = SqliteDatabase(str(data_dir / "papersync.sqlite"))
        old.execute_sql("CREATE TABLE articles (bookmark_id INTEGER, title TEXT)")
        old.execute_sql("INSERT INTO articles VALUES (1, 'old')")
        old.execute_sql(
            "CREATE TABLE highlights (id INTEGER PRIMARY KEY, bookmark_id INTEGER, highlight_id INTEGER, "
            "text TEXT, note TEXT, position INTEGER, sync_status TEXT)"
        )
        old.execute_sql("INSERT INTO highlights VALUES (1, 1, 10, 'synced one', NULL, 0, 'synced')")
        old.execute_sql("INSERT INTO highlights VALUES (2, 1, NULL, 'new one', 'n', 1, 'pending')")
        old.execute_sql("INSERT INTO highlights VALUES (3, 1, 11, 'gone one', NULL, 2, 'pending_delete')")
        old.execute_sql("PRAGMA user_version = 3")
        old.close()

        store = LocalStore(data_dir).init()
        try:
            assert store._scalar("PRAGMA user_version") == SCHEMA_VERSION
            assert store.get_article(1) is None
            rows = store.get_all_highlights()
            assert [(h.text, h.sync_status, h.highlight_id) for h in rows] == [
                ("new one", SyncStatus.PENDING, None),
                ("gone one", SyncStatus.PENDING_DELETE, 11),
            ]
            assert rows[0].note == "n"
            assert rows[0].time_created > 0
        finally:
            store.close()

    def test_unopenable_store(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            LocalStore(blocker / "data").init()


class TestArticles:
    """Tests for article storage."""

    def test_boolean_normalization(self, store):
        """starred "1" is stored true, 0 is stored false."""
        store.upsert_article(make_article(1, starred="1"))
        store.upsert_article(make_article(2, starred=0))
        assert store.get_article(1).starred is True
        assert store.get_article(2).starred is False

    def test_upsert_replaces_but_keeps_cached_content(self, store):
        store.upsert_article(make_article(1, title="Old"))
        store.store_article_content(1, "<p>hello</p>")

        store.upsert_article(make_article(1, title="New", starred=True, progress=0.4))

        article = store.get_article(1)
        assert article.title == "New"
        assert article.starred is True
        assert article.progress == 0.4
        assert article.html_filename == "1.html"
        assert article.html_size == len("<p>hello</p>")

    def test_get_articles_newest_first_without_archived(self, store):
        store.upsert_article(make_article(1, time=100))
        store.upsert_article(make_article(2, time=300))
        store.upsert_article(make_article(3, time=200))
        store.upsert_article(Article(bookmark_id=4, title="A", url="u", is_archived=True, time_added=400))

        assert [a.bookmark_id for a in store.get_articles()] == [2, 3, 1]
        assert len(store.get_articles(include_archived=True)) == 4
        assert store.get_unarchived_bookmark_ids() == [1, 2, 3]

    def test_update_progress_clamped(self, store):
        store.upsert_article(make_article(1))
        store.update_progress(1, 1.5)
        assert store.get_article(1).progress == 1.0
        store.update_progress(1, -1)
        assert store.get_article(1).progress == 0.0

    def test_update_missing_article(self, store):
        with pytest.raises(NotFound):
            store.update_progress(99, 0.5)

    def test_update_article_status(self, store):
        store.upsert_article(make_article(1))
        store.update_article_status(1, "starred", True)
        store.update_article_status(1, "archived", True)
        article = store.get_article(1)
        assert article.starred is True
        assert article.is_archived is True

    def test_update_article_status_unknown(self, store):
        with pytest.raises(ValueError):
            store.update_article_status(1, "read", True)

    def test_store_content_requires_article(self, store):
        with pytest.raises(NotFound):
            store.store_article_content(99, "<p>x</p>")

    def test_cached_path(self, store):
        store.upsert_article(make_article(1))
        assert store.get_article_path_if_exists(1) is None

        path = store.store_article_content(1, "<p>café</p>")

        assert path == store.articles_dir / "1.html"
        assert store.get_article_path_if_exists(1) == path
        assert store.read_article_html(1) == "<p>café</p>"
        assert store.get_article(1).html_size == len("<p>café</p>".encode("utf-8"))

        path.unlink()
        assert store.get_article_path_if_exists(1) is None

    def test_delete_article_removes_everything(self, store, make_highlight):
        store.upsert_article(make_article(1))
        store.store_article_content(1, "<p>x</p>")
        thumbnail = store.save_thumbnail(1, b"\xff\xd8jpeg")
        store.store_highlights(1, [make_highlight(5, bookmark_id=1)])
        store.save_pending_highlight(pending(bookmark_id=1))

        assert store.delete_article(1) is True

        assert store.get_article(1) is None
        assert store.get_all_highlights() == []
        assert not (store.articles_dir / "1.html").exists()
        assert not thumbnail.exists()
        assert store.delete_article(1) is False

    def test_thumbnail_path(self, store):
        assert store.get_thumbnail_path(7) is None
        path = store.save_thumbnail(7, b"img")
        assert path.name == "7_thumbnail.jpg"
        assert store.get_thumbnail_path(7) == path

    def test_clear_all(self, store, make_highlight):
        store.upsert_article(make_article(1))
        store.store_article_content(1, "<p>x</p>")
        store.save_thumbnail(1, b"img")
        store.store_highlights(1, [make_highlight(5, bookmark_id=1)])

        store.clear_all()

        assert store.count_articles() == 0
        assert store.get_all_highlights() == []
        assert list(store.articles_dir.glob("*.html")) == []
        assert list(store.thumbnail_dir.iterdir()) == []

    def test_last_sync_time(self, store):
        assert store.get_last_sync_time() is None
        store.upsert_article(Article(bookmark_id=1, title="t", url="u", time_synced=500))
        store.upsert_article(Article(bookmark_id=2, title="t", url="u", time_synced=900))
        assert store.get_last_sync_time() == 900


class TestHighlightMerge:
    """Tests for merging server highlights into the store."""

    def test_round_trip(self, store, make_highlight):
        """Stored synced highlights read back field for field."""
        server = [
            make_highlight(1, text="first", position=0, note="a note"),
            make_highlight(2, text="second", position=1),
            make_highlight(3, text="third", position=2),
        ]

        assert store.store_highlights(BOOKMARK_ID, server) == 3

        stored = store.get_highlights(BOOKMARK_ID)
        assert len(stored) == 3
        for original, row in zip(server, stored):
            assert row.text == original.text
            assert row.note == original.note
            assert row.position == original.position
            assert row.bookmark_id == BOOKMARK_ID
            assert row.sync_status == SyncStatus.SYNCED

    def test_merge_replaces_synced_rows(self, store, make_highlight):
        store.store_highlights(BOOKMARK_ID, [make_highlight(1), make_highlight(2)])
        store.store_highlights(BOOKMARK_ID, [make_highlight(2), make_highlight(3)])
        assert [h.highlight_id for h in store.get_highlights(BOOKMARK_ID)] == [2, 3]

    def test_merge_scoped_to_article(self, store, make_highlight):
        store.store_highlights(1, [make_highlight(10, bookmark_id=1)])
        store.store_highlights(2, [])
        assert len(store.get_highlights(1)) == 1

    @pytest.mark.parametrize("server", [[], None])
    def test_empty_input(self, store, make_highlight, server):
        """Empty and None inputs succeed and leave no synced rows."""
        store.store_highlights(BOOKMARK_ID, [make_highlight(1)])
        assert store.store_highlights(BOOKMARK_ID, server) == 0
        assert store.get_highlights(BOOKMARK_ID) == []

    def test_pending_delete_survives_pull(self, store, make_highlight):
        """A highlight being deleted locally is not resurrected by a pull."""
        store.store_highlights(BOOKMARK_ID, [make_highlight(1), make_highlight(2)])
        target = next(h for h in store.get_highlights(BOOKMARK_ID) if h.highlight_id == 2)
        store.mark_highlight_pending_delete(target.id)

        store.store_highlights(BOOKMARK_ID, [make_highlight(1), make_highlight(2)])

        rows = [h for h in store.get_all_highlights() if h.highlight_id == 2]
        assert len(rows) == 1
        assert rows[0].sync_status == SyncStatus.PENDING_DELETE
        assert [h.highlight_id for h in store.get_highlights(BOOKMARK_ID)] == [1]

    def test_pending_untouched_by_pull(self, store, make_highlight):
        """A pending highlight keeps its count and content across a merge."""
        saved = store.save_pending_highlight(pending("mine", position=4))

        store.store_highlights(BOOKMARK_ID, [make_highlight(1)])
        store.store_highlights(BOOKMARK_ID, [])

        rows = [h for h in store.get_all_highlights() if h.sync_status == SyncStatus.PENDING]
        assert rows == [saved]

    def test_duplicate_ids_in_snapshot(self, store, make_highlight):
        assert store.store_highlights(BOOKMARK_ID, [make_highlight(1), make_highlight(1)]) == 1

    def test_highlights_without_id_skipped(self, store, make_highlight):
        nameless = make_highlight(1)
        nameless.highlight_id = None
        assert store.store_highlights(BOOKMARK_ID, [nameless]) == 0

    def test_ordered_by_position(self, store, make_highlight):
        store.store_highlights(BOOKMARK_ID, [make_highlight(1, position=5), make_highlight(2, position=1)])
        store.save_pending_highlight(pending(position=3))
        assert [h.position for h in store.get_highlights(BOOKMARK_ID)] == [1, 3, 5]


class TestHighlightTransitions:
    """Tests for sync_status transitions."""

    def test_save_pending(self, store):
        saved = store.save_pending_highlight(pending("mine", position=2))
        assert saved.id is not None
        assert saved.sync_status == SyncStatus.PENDING
        assert saved.highlight_id is None
        assert store.get_pending_highlights() == [saved]

    @pytest.mark.parametrize("highlight", [
        Highlight(bookmark_id=0, text="x"),
        Highlight(bookmark_id=1, text=""),
    ])
    def test_save_pending_validation(self, store, highlight):
        with pytest.raises(ValueError):
            store.save_pending_highlight(highlight)

    def test_synced_then_deleted_becomes_pending_delete(self, store):
        """After getting a server id, deleting defers to the server."""
        saved = store.save_pending_highlight(pending())
        store.mark_highlight_synced(saved.id, 9999)

        synced = store.get_highlight(saved.id)
        assert synced.sync_status == SyncStatus.SYNCED
        assert synced.highlight_id == 9999

        assert store.remove_highlight(saved.id) == SyncStatus.PENDING_DELETE
        assert store.get_highlight(saved.id).sync_status == SyncStatus.PENDING_DELETE

    def test_delete_never_pushed_highlight(self, store):
        saved = store.save_pending_highlight(pending())
        assert store.remove_highlight(saved.id) is None
        assert store.get_highlight(saved.id) is None

    def test_remove_missing_highlight(self, store):
        with pytest.raises(NotFound):
            store.remove_highlight(424242)

    def test_mark_synced_duplicate_drops_pending_row(self, store, make_highlight):
        store.store_highlights(BOOKMARK_ID, [make_highlight(9999)])
        saved = store.save_pending_highlight(pending())

        store.mark_highlight_synced(saved.id, 9999)

        assert store.get_highlight(saved.id) is None
        assert [h.highlight_id for h in store.get_all_highlights()] == [9999]

    def test_delete_highlight_by_id(self, store):
        saved = store.save_pending_highlight(pending())
        assert store.delete_highlight_by_id(saved.id) is True
        assert store.delete_highlight_by_id(saved.id) is False

    def test_delete_highlights_for_article(self, store, make_highlight):
        store.store_highlights(BOOKMARK_ID, [make_highlight(1)])
        store.save_pending_highlight(pending())
        assert store.delete_highlights(BOOKMARK_ID) == 2


class TestApplySnapshot:
    """Tests for applying a full pull."""

    def test_apply_snapshot(self, store, make_highlight):
        store.upsert_article(make_article(1))
        store.upsert_article(make_article(2))
        store.store_article_content(2, "<p>bye</p>")
        store.store_highlights(1, [make_highlight(5, bookmark_id=1)])
        store.save_pending_highlight(pending("keep", bookmark_id=1))

        stats = store.apply_snapshot(ListResponse(
            articles=[make_article(1, title="Updated"), make_article(3)],
            highlights=[make_highlight(6, bookmark_id=3)],
            delete_ids=[2],
        ))

        assert (stats.articles, stats.highlights, stats.deleted) == (2, 1, 1)
        assert store.get_article(1).title == "Updated"
        assert store.get_article(2) is None
        assert not (store.articles_dir / "2.html").exists()
        # article 1 came back without highlights: synced rows go, pending stays
        assert [h.text for h in store.get_highlights(1)] == ["keep"]
        assert [h.highlight_id for h in store.get_highlights(3)] == [6]

    def test_snapshot_rolls_back_on_failure(self, store, make_highlight):
        """A failing highlight insert undoes the article upserts of the same pull."""
        store.upsert_article(make_article(1, title="Before"))
        unbindable = make_highlight(6, bookmark_id=1)
        unbindable.text = object()

        with pytest.raises(StorageError):
            store.apply_snapshot(ListResponse(
                articles=[make_article(1, title="After")],
                highlights=[unbindable],
            ))

        assert store.get_article(1).title == "Before"
