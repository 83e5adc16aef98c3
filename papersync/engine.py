"""Engine: the operations a host application calls.

An Engine is constructed explicitly and owns its store, durable state,
API client and background worker. Independent engines share nothing.
"""

import asyncio
import logging
import socket
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from pathlib import Path
from typing import Optional, Union

import httpx

from .api import ApiClient
from .config import Config
from .errors import AuthenticationRequired, NetworkUnavailable
from .images import MAX_IMAGE_BYTES, embed_images
from .models import Article, Credentials, Highlight
from .offline_queue import OfflineQueue
from .signer import Signer
from .state import StateManager
from .store import LocalStore
from .sync import SyncCoordinator, SyncReport
from .transport import CallResult, Transport

logger = logging.getLogger(__name__)


def check_connectivity(host: str, port: int = 443, timeout: float = 2.0) -> bool:
    """Return True if a TCP connection to host:port can be opened."""
    if not host:
        return False
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def occurrence_position(document_text: str, text: str, offset: int) -> int:
    """
    Zero-based occurrence index of ``text`` starting at ``offset``.

    Highlights are located by which repetition of their text they are,
    not by character offset, so the stored position survives reflowing.
    Returns the number of earlier occurrences of ``text`` in the document.
    """
    if not text:
        return 0
    count = 0
    start = document_text.find(text)
    while 0 <= start < offset:
        count += 1
        start = document_text.find(text, start + len(text))
    return count


class Engine:
    """Offline-first client for one user's reading list."""

    def __init__(
        self,
        api: ApiClient,
        store: LocalStore,
        state: StateManager,
        is_online: Callable[[], bool],
        list_limit: int = 200,
        embed_images: bool = True,
        max_image_bytes: int = MAX_IMAGE_BYTES,
    ):
        """
        Initialize the engine from already constructed collaborators.

        Args:
            api: Signed API client
            store: Initialized local store
            state: Loaded durable state (credentials and queue)
            is_online: Connectivity check run before network calls
            list_limit: Maximum bookmarks requested per pull
            embed_images: Inline remote images into downloaded articles
            max_image_bytes: Largest image that is embedded
        """
        self.api = api
        self.store = store
        self.state = state
        self.is_online = is_online
        self.embed_images = embed_images
        self.max_image_bytes = max_image_bytes
        self.queue = OfflineQueue(api, state, is_online)
        self.coordinator = SyncCoordinator(api, store, self.queue, list_limit=list_limit)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="papersync")

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: httpx.BaseTransport | None = None,
        is_online: Callable[[], bool] | None = None,
    ) -> "Engine":
        """Build an engine with its own store, state file and HTTP client."""
        signer = Signer(config.consumer_key, config.consumer_secret)
        http = Transport(config.connect_timeout, config.request_timeout, transport=transport)
        api = ApiClient(signer, http, config.api_url)

        state = StateManager(config.state_file)
        state.load()
        store = LocalStore(config.data_dir).init()

        if is_online is None:
            is_online = partial(check_connectivity, config.online_check_host)

        return cls(
            api,
            store,
            state,
            is_online,
            list_limit=config.list_limit,
            embed_images=config.embed_images,
            max_image_bytes=config.max_image_bytes,
        )

    def close(self) -> None:
        # peewee connections are per thread; the worker's is closed on the worker
        self._executor.submit(self.store.close)
        self._executor.shutdown(wait=True)
        self.api.transport.close()
        self.store.close()

    def __enter__(self) -> "Engine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # =========================================================================
    # Authentication
    # =========================================================================

    def _require_credentials(self) -> Credentials:
        credentials = self.state.get_credentials()
        if credentials is None:
            raise AuthenticationRequired("Not logged in")
        return credentials

    def _require_online(self) -> None:
        if not self.is_online():
            raise NetworkUnavailable("No network connectivity")

    def is_authenticated(self) -> bool:
        return self.state.get_credentials() is not None

    def authenticate(self, username: str, password: str) -> Credentials:
        """
        Log in and persist the access token.

        Raises:
            NetworkUnavailable: No connectivity
            AuthenticationFailed: Username or password rejected
        """
        self._require_online()
        credentials = self.api.access_token(username, password)
        self.state.set_credentials(credentials)
        logger.info(f"Logged in as {username}")
        return credentials

    def logout(self) -> None:
        """Forget the token, drop queued requests and purge the local store."""
        self.state.clear()
        self.store.clear_all()
        logger.info("Logged out")

    # =========================================================================
    # Sync
    # =========================================================================

    def sync(self) -> SyncReport:
        """
        Run one sync cycle.

        Raises:
            AuthenticationRequired: Not logged in
            NetworkUnavailable: No connectivity
            SyncInProgress: Another cycle is running
        """
        credentials = self._require_credentials()
        self._require_online()
        return self.coordinator.run(credentials)

    def dispatch(self, operation: Union[str, Callable], *args, callback=None, **kwargs) -> Future:
        """
        Run an operation on the background worker.

        Operations run one at a time in submission order. ``callback`` is
        called as ``callback(result, error)`` on the worker thread once the
        operation finishes.
        """
        func = getattr(self, operation) if isinstance(operation, str) else operation
        future = self._executor.submit(func, *args, **kwargs)

        if callback is not None:
            def done(f: Future) -> None:
                error = f.exception()
                if error is not None:
                    logger.warning(f"Background {getattr(func, '__name__', func)} failed: {error}")
                    callback(None, error)
                else:
                    callback(f.result(), None)

            future.add_done_callback(done)
        return future

    async def sync_async(self) -> SyncReport:
        return await asyncio.to_thread(self.sync)

    async def download_article_async(self, bookmark_id: int) -> Path:
        return await asyncio.to_thread(self.download_article, bookmark_id)

    # =========================================================================
    # Article actions (queued while offline)
    # =========================================================================

    def add_article(self, url: str, title: str | None = None) -> CallResult:
        """Save a URL to the reading list; queued when offline."""
        return self.queue.enqueue_or_send("add", {"url": url, "title": title})

    def _flag_action(self, endpoint: str, bookmark_id: int, status_type: str, value: bool) -> CallResult:
        result = self.queue.enqueue_or_send(endpoint, {"bookmark_id": bookmark_id})
        if result.success and self.store.get_article(bookmark_id) is not None:
            self.store.update_article_status(bookmark_id, status_type, value)
        return result

    def archive_article(self, bookmark_id: int) -> CallResult:
        return self._flag_action("archive", bookmark_id, "archived", True)

    def favorite_article(self, bookmark_id: int) -> CallResult:
        return self._flag_action("star", bookmark_id, "starred", True)

    def unfavorite_article(self, bookmark_id: int) -> CallResult:
        return self._flag_action("unstar", bookmark_id, "starred", False)

    # =========================================================================
    # Article content
    # =========================================================================

    def download_article(self, bookmark_id: int) -> Path:
        """
        Fetch an article's HTML and cache it.

        Remote images are inlined as data: URIs unless disabled, and the
        first one becomes the article thumbnail.

        Returns:
            Path of the cached HTML file

        Raises:
            NotFound: The article is not in the local store
            AuthenticationRequired: Not logged in
            NetworkUnavailable: No connectivity
            NetworkError, RemoteRejected: The fetch failed
        """
        self.store.require_article(bookmark_id)
        credentials = self._require_credentials()
        self._require_online()

        html_content = self.api.get_text(credentials, bookmark_id)
        if self.embed_images:
            embedded = embed_images(html_content, self.api.transport, self.max_image_bytes)
            html_content = embedded.html
            if embedded.first_image is not None:
                self.store.save_thumbnail(bookmark_id, embedded.first_image)
        path = self.store.store_article_content(bookmark_id, html_content)
        logger.info(f"Downloaded article {bookmark_id}")
        return path

    def get_cached_article_path(self, bookmark_id: int) -> Optional[Path]:
        return self.store.get_article_path_if_exists(bookmark_id)

    def get_article(self, bookmark_id: int) -> Optional[Article]:
        return self.store.get_article(bookmark_id)

    def get_articles(self) -> list[Article]:
        """Unarchived articles, newest first."""
        return self.store.get_articles()

    def get_last_sync_time(self) -> Optional[int]:
        return self.store.get_last_sync_time()

    def update_progress(self, bookmark_id: int, progress: float) -> None:
        self.store.update_progress(bookmark_id, progress)

    def get_article_thumbnail(self, bookmark_id: int) -> Optional[Path]:
        return self.store.get_thumbnail_path(bookmark_id)

    # =========================================================================
    # Highlights
    # =========================================================================

    def fetch_highlights(self, bookmark_id: int) -> list[Highlight]:
        """Pull one article's highlights from the service and merge them."""
        credentials = self._require_credentials()
        self._require_online()
        highlights = self.api.get_highlights(credentials, bookmark_id)
        self.store.store_highlights(bookmark_id, highlights)
        return self.store.get_highlights(bookmark_id)

    def save_pending_highlight(self, highlight: Highlight) -> Highlight:
        """Record a new highlight locally; it is pushed on the next sync."""
        return self.store.save_pending_highlight(highlight)

    def delete_highlight(self, highlight: Union[Highlight, int]) -> Optional[str]:
        """
        Delete a highlight locally.

        Returns:
            ``"pending_delete"`` when the server still has to be told,
            None when the highlight was never pushed and is simply gone
        """
        local_id = highlight.id if isinstance(highlight, Highlight) else highlight
        if local_id is None:
            raise ValueError("Highlight has no local id")
        return self.store.remove_highlight(local_id)

    def get_stored_highlights(self, bookmark_id: int) -> list[Highlight]:
        return self.store.get_highlights(bookmark_id)
