"""HTTP execution and outcome classification for signed requests and plain downloads."""

import logging
from dataclasses import dataclass

import httpx

from .codec import parse_error_message
from .errors import EXCEPTIONS_BY_TYPE, ErrorType
from .signer import SignedRequest

logger = logging.getLogger(__name__)

AUTH_ERROR_MESSAGE = "Authentication failed. Please log in again."
SERVER_ERROR_MESSAGE = "There was a server problem. Please try again later."
USER_AGENT = "papersync/0.1.0"


@dataclass
class CallResult:
    """Outcome of one remote call.

    ``queued`` marks a mutating call deferred while offline: it counts as a
    success the caller should report as "will happen on next sync".
    """

    success: bool
    body: str | None = None
    status_code: int | None = None
    error_type: ErrorType | None = None
    error_message: str | None = None
    queued: bool = False

    @classmethod
    def ok(cls, body: str | None = None, status_code: int | None = 200) -> "CallResult":
        return cls(success=True, body=body, status_code=status_code)

    @classmethod
    def deferred(cls) -> "CallResult":
        return cls(success=True, queued=True)

    @classmethod
    def failure(
        cls,
        error_type: ErrorType,
        error_message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> "CallResult":
        return cls(
            success=False,
            error_type=error_type,
            error_message=error_message,
            status_code=status_code,
            body=body,
        )

    def raise_for_error(self) -> "CallResult":
        """Raise the typed exception matching a failed result; return self otherwise."""
        if self.success:
            return self
        exc_class = EXCEPTIONS_BY_TYPE.get(self.error_type, RuntimeError)
        raise exc_class(self.error_message or "Request failed")


def classify_response(status_code: int, body: str | None) -> CallResult:
    """
    Map an HTTP status and body to a CallResult.

    2xx is success; 401 is an auth error with a fixed message; any other
    status >= 400 surfaces the service's ``type: error`` message when the
    body carries one, else a generic server-problem message.
    """
    if 200 <= status_code < 300:
        return CallResult.ok(body, status_code)

    if status_code == 401:
        return CallResult.failure(ErrorType.AUTH, AUTH_ERROR_MESSAGE, status_code, body)

    message = parse_error_message(body) or SERVER_ERROR_MESSAGE
    return CallResult.failure(ErrorType.REMOTE, message, status_code, body)


@dataclass
class Download:
    """Outcome of an unsigned GET for a binary resource such as an image."""

    success: bool
    content: bytes = b""
    content_type: str | None = None
    status_code: int | None = None
    error_message: str | None = None


class Transport:
    """Blocking httpx executor with separate connect and total timeouts."""

    def __init__(
        self,
        connect_timeout: float = 10.0,
        request_timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the transport.

        Args:
            connect_timeout: Seconds allowed to establish the connection
            request_timeout: Seconds allowed for the rest of the exchange
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.connect_timeout = connect_timeout
        self.request_timeout = request_timeout
        self._client = httpx.Client(
            timeout=httpx.Timeout(request_timeout, connect=connect_timeout),
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )

    def execute(self, request: SignedRequest) -> CallResult:
        """Send a signed request and classify the outcome. Never raises for HTTP failures."""
        try:
            response = self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body.encode("utf-8") if request.body else None,
            )
            body = response.text
        except httpx.TimeoutException as e:
            logger.warning(f"Request to {request.url} timed out: {e}")
            return CallResult.failure(ErrorType.NETWORK, f"Request timed out: {e}")
        except httpx.TransportError as e:
            logger.warning(f"Request to {request.url} failed: {e}")
            return CallResult.failure(ErrorType.NETWORK, f"Network error: {e}")
        except httpx.HTTPError as e:
            logger.warning(f"Request to {request.url} failed: {e}")
            return CallResult.failure(ErrorType.NETWORK, f"HTTP error: {e}")

        result = classify_response(response.status_code, body)
        if not result.success:
            logger.warning(
                f"Request to {request.url} failed with HTTP {response.status_code}: {result.error_message}"
            )
        return result

    def download(self, url: str, max_bytes: int) -> Download:
        """
        GET an unsigned URL, giving up once the body exceeds max_bytes.

        Redirects are followed. Never raises for HTTP failures.
        """
        chunks: list[bytes] = []
        size = 0
        try:
            with self._client.stream("GET", url, follow_redirects=True) as response:
                if response.status_code != 200:
                    return Download(False, status_code=response.status_code,
                                    error_message=f"HTTP {response.status_code}")
                for chunk in response.iter_bytes():
                    size += len(chunk)
                    if size > max_bytes:
                        return Download(False, status_code=200,
                                        error_message=f"Larger than {max_bytes} bytes")
                    chunks.append(chunk)
                content_type = response.headers.get("Content-Type")
        except httpx.TimeoutException as e:
            return Download(False, error_message=f"Request timed out: {e}")
        except httpx.HTTPError as e:
            return Download(False, error_message=f"HTTP error: {e}")

        return Download(True, b"".join(chunks), content_type, 200)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
