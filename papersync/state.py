"""Durable JSON state: access credentials and the offline request queue."""

import json
import logging
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from .errors import StorageError
from .models import Credentials, QueuedRequest

logger = logging.getLogger(__name__)


@dataclass
class State:
    """Complete persisted state."""

    credentials: Credentials | None = None
    queue: list[QueuedRequest] = field(default_factory=list)
    last_updated: str | None = None


class StateManager:
    """Manages persistent state with atomic writes."""

    def __init__(self, state_file: Path):
        """
        Initialize state manager.

        Args:
            state_file: Path to state JSON file.
        """
        self.state_file = Path(state_file)
        self.state = State()

    def load(self) -> None:
        """Load state from file if it exists."""
        if not self.state_file.exists():
            return

        try:
            with open(self.state_file) as f:
                data = json.load(f)

            self.state.last_updated = data.get("last_updated")

            creds = data.get("credentials")
            if creds:
                self.state.credentials = Credentials(
                    token=creds["token"],
                    token_secret=creds["token_secret"],
                    username=creds.get("username"),
                )

            self.state.queue = [
                QueuedRequest(
                    endpoint=item["endpoint"],
                    url=item["url"],
                    params={k: str(v) for k, v in item["params"].items()},
                    timestamp=item["timestamp"],
                )
                for item in data.get("queue", [])
            ]

        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Corrupted state file: {e}") from e

    def save(self) -> None:
        """Save state to file atomically."""
        self._write(self.state.credentials, self.state.queue)

    def _write(self, credentials: Credentials | None, queue: list[QueuedRequest]) -> None:
        """
        Write the given credentials and queue to disk atomically.

        In-memory state is only updated by callers once this returns, so a
        failed write never leaves an unsaved change behind.

        Raises:
            StorageError: The state file could not be written
        """
        last_updated = datetime.now(timezone.utc).isoformat()

        data = {
            "last_updated": last_updated,
            "credentials": {
                "token": credentials.token,
                "token_secret": credentials.token_secret,
                "username": credentials.username,
            } if credentials else None,
            "queue": [
                {
                    "endpoint": req.endpoint,
                    "url": req.url,
                    "params": req.params,
                    "timestamp": req.timestamp,
                }
                for req in queue
            ],
        }

        # Atomic write: write to temp file, then rename
        temp_path = None
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w", dir=self.state_file.parent, suffix=".tmp", delete=False
            ) as f:
                temp_path = Path(f.name)
                json.dump(data, f, indent=2)

            temp_path.replace(self.state_file)
        except OSError as e:
            if temp_path is not None:
                temp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write state file {self.state_file}: {e}") from e

        self.state.last_updated = last_updated

    def get_credentials(self) -> Credentials | None:
        return self.state.credentials

    def set_credentials(self, credentials: Credentials) -> None:
        """Store credentials and save immediately."""
        self._write(credentials, self.state.queue)
        self.state.credentials = credentials

    def clear(self) -> None:
        """Forget credentials and every queued request, then save."""
        self._write(None, [])
        self.state.credentials = None
        self.state.queue = []

    def get_queue(self) -> list[QueuedRequest]:
        """Snapshot of the queue in FIFO order."""
        return list(self.state.queue)

    def append_request(self, request: QueuedRequest) -> None:
        """Append to the tail of the queue and save before returning."""
        queue = self.state.queue + [request]
        self._write(self.state.credentials, queue)
        self.state.queue = queue
        logger.debug(f"Queued {request.endpoint} request ({len(queue)} pending)")

    def remove_request(self, request: QueuedRequest) -> None:
        """Remove one queued request (by identity) and save before returning."""
        queue = [r for r in self.state.queue if r is not request]
        self._write(self.state.credentials, queue)
        self.state.queue = queue
