"""Offline queue for mutating calls made without connectivity.

Queued entries keep only business parameters (``bookmark_id``, ``url``).
The OAuth envelope is rebuilt at replay time with the credentials current
at that moment, so a fresh nonce and timestamp are signed on every attempt.
Every queueable endpoint is idempotent on the service side, which makes
redelivery after a lost success response harmless.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .api import ApiClient, get_endpoint, validate_params
from .errors import AuthenticationRequired
from .models import Credentials, QueuedRequest, now_ts
from .state import StateManager
from .transport import CallResult

logger = logging.getLogger(__name__)


@dataclass
class QueueError:
    """A queued request whose replay failed; it stays queued."""

    url: str
    params: dict[str, str]
    error: str


class OfflineQueue:
    """Durable FIFO of deferred mutating calls."""

    def __init__(
        self,
        api: ApiClient,
        state: StateManager,
        is_online: Callable[[], bool],
    ):
        self.api = api
        self.state = state
        self.is_online = is_online

    def __len__(self) -> int:
        return len(self.state.get_queue())

    def pending(self) -> list[QueuedRequest]:
        return self.state.get_queue()

    def _credentials(self) -> Credentials:
        credentials = self.state.get_credentials()
        if credentials is None:
            raise AuthenticationRequired("Not authenticated")
        return credentials

    def enqueue_or_send(self, endpoint: str, params: Mapping[str, object]) -> CallResult:
        """
        Send a mutating call now, or queue it when offline.

        Args:
            endpoint: Name of a queueable endpoint (add, archive, star, unstar)
            params: Business parameters for the call

        Returns:
            The transport result when sent, or a ``queued`` success when deferred

        Raises:
            AuthenticationRequired: No access token is stored
            ValueError: Endpoint is not queueable or parameters are invalid
        """
        definition = get_endpoint(endpoint)
        if not definition.queueable:
            raise ValueError(f"Endpoint {endpoint} cannot be queued")
        call_params = validate_params(definition, params)
        credentials = self._credentials()

        if self.is_online():
            return self.api.call(endpoint, call_params, credentials)

        request = QueuedRequest(
            endpoint=endpoint,
            url=self.api.url_for(endpoint),
            params=call_params,
            timestamp=now_ts(),
        )
        self.state.append_request(request)
        logger.info(f"Offline: queued {endpoint} {call_params}")
        return CallResult.deferred()

    def drain(self) -> list[QueueError]:
        """
        Replay queued requests strictly in FIFO order.

        A failed entry stays queued and is reported; later entries are still
        attempted.

        Returns:
            One QueueError per entry that could not be delivered
        """
        queued = self.state.get_queue()
        if not queued:
            return []

        if not self.is_online():
            logger.info(f"Offline: keeping {len(queued)} queued requests")
            return [QueueError(r.url, dict(r.params), "No network connectivity") for r in queued]

        credentials = self._credentials()
        errors: list[QueueError] = []
        logger.info(f"Replaying {len(queued)} queued requests")

        for request in queued:
            try:
                result = self.api.call(request.endpoint, request.params, credentials, url=request.url)
            except ValueError as e:
                result = CallResult(success=False, error_message=str(e))

            if result.success:
                self.state.remove_request(request)
                logger.debug(f"Delivered queued {request.endpoint} {request.params}")
            else:
                error = result.error_message or "Request failed"
                logger.warning(f"Queued {request.endpoint} request failed: {error}")
                errors.append(QueueError(request.url, dict(request.params), error))

        return errors
