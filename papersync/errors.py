"""Error taxonomy for papersync."""

from enum import Enum


class ErrorType(Enum):
    """Failure classes for remote calls."""

    AUTH = "auth"  # HTTP 401
    REMOTE = "remote"  # any other HTTP >= 400
    NETWORK = "network"  # timeout, TLS handshake, DNS, refused connection
    UNAVAILABLE = "unavailable"  # no connectivity before the call was attempted


class PaperSyncError(Exception):
    """Base class for all papersync errors."""


class AuthenticationRequired(PaperSyncError):
    """No valid access token is available."""


class AuthenticationFailed(PaperSyncError):
    """The service rejected the supplied credentials."""


class NetworkUnavailable(PaperSyncError):
    """There is no connectivity to attempt a call."""


class NetworkError(PaperSyncError):
    """A call was attempted but failed at the connection level."""


class RemoteRejected(PaperSyncError):
    """The service answered with an error status."""


class StorageError(PaperSyncError):
    """Local persistence failed."""


class NotFound(PaperSyncError):
    """A referenced article or highlight is absent locally."""


class SyncInProgress(PaperSyncError):
    """A sync cycle is already running against this store."""


EXCEPTIONS_BY_TYPE = {
    ErrorType.AUTH: AuthenticationRequired,
    ErrorType.REMOTE: RemoteRejected,
    ErrorType.NETWORK: NetworkError,
    ErrorType.UNAVAILABLE: NetworkUnavailable,
}
