"""Pytest fixtures for papersync tests."""

import json
import sys
from pathlib import Path
from urllib.parse import parse_qsl

import httpx
import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

# Configure pytest-asyncio
pytest_plugins = ('pytest_asyncio',)

from papersync.api import ApiClient
from papersync.engine import Engine
from papersync.models import Credentials, Highlight, SyncStatus
from papersync.offline_queue import OfflineQueue
from papersync.signer import Signer
from papersync.state import StateManager
from papersync.store import LocalStore
from papersync.transport import Transport

BASE_URL = "https://www.instapaper.com"


class FakeService:
    """Scripted stand-in for the remote service, served via httpx.MockTransport.

    Each path holds a list of responses; the last one repeats once the
    others are used up. A response is ``(status, body)``, an exception
    instance to raise, or a callable taking the request.
    """

    def __init__(self):
        self.routes: dict[str, list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, path: str, status: int = 200, body="", *, error: Exception | None = None):
        if error is not None:
            response = error
        elif isinstance(body, (list, dict)):
            response = (status, json.dumps(body))
        else:
            response = (status, body)
        self.routes.setdefault(path, []).append(response)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responses = self.routes.get(request.url.path)
        if not responses:
            return httpx.Response(404, json=[{"type": "error", "error_code": 404, "message": "No route"}])
        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(request)
        status, body = response
        return httpx.Response(status, text=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        return dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))


class Connectivity:
    """Switchable is_online check."""

    def __init__(self, online: bool = True):
        self.online = online

    def __call__(self) -> bool:
        return self.online


@pytest.fixture
def service():
    """Scripted remote service."""
    return FakeService()


@pytest.fixture
def connectivity():
    return Connectivity(online=True)


@pytest.fixture
def signer():
    """Signer with pinned nonce and timestamp."""
    return Signer(
        "consumer-key",
        "consumer-secret",
        nonce_factory=lambda: "fixednonce",
        clock=lambda: "1700000000",
    )


@pytest.fixture
def api(signer, service):
    """API client wired to the fake service."""
    transport = Transport(connect_timeout=1.0, request_timeout=2.0, transport=service.transport())
    yield ApiClient(signer, transport, BASE_URL)
    transport.close()


@pytest.fixture
def credentials():
    return Credentials(token="user-token", token_secret="user-secret", username="reader@example.com")


@pytest.fixture
def state_file(tmp_path):
    """Temporary state file for testing."""
    return tmp_path / "state.json"


@pytest.fixture
def state(state_file, credentials):
    """Loaded state with stored credentials."""
    sm = StateManager(state_file)
    sm.load()
    sm.set_credentials(credentials)
    return sm


@pytest.fixture
def store(tmp_path):
    """Initialized store in a temporary directory."""
    local_store = LocalStore(tmp_path / "data").init()
    yield local_store
    local_store.close()


@pytest.fixture
def offline_queue(api, state, connectivity):
    return OfflineQueue(api, state, connectivity)


@pytest.fixture
def engine(api, store, state, connectivity):
    """Engine over the fake service, a temporary store and a logged-in state."""
    eng = Engine(api, store, state, connectivity)
    yield eng
    eng.close()


@pytest.fixture
def make_highlight():
    """Factory for server-side highlights."""

    def _make(highlight_id, bookmark_id=12345, text=None, position=0, note=None):
        return Highlight(
            bookmark_id=bookmark_id,
            highlight_id=highlight_id,
            text=text or f"Highlight {highlight_id}",
            note=note,
            position=position,
            time_created=1700000000,
            time_updated=1700000000,
            sync_status=SyncStatus.SYNCED,
        )

    return _make


def bookmark_item(bookmark_id, title="An article", starred="0", **extra):
    """A ``type: bookmark`` object as the list endpoint returns it."""
    item = {
        "type": "bookmark",
        "bookmark_id": bookmark_id,
        "title": title,
        "url": f"https://example.com/{bookmark_id}",
        "starred": starred,
        "progress": 0.0,
        "time": 1700000000 + bookmark_id % 1000,
        "progress_timestamp": 0,
    }
    item.update(extra)
    return item
