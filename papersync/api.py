"""Remote service endpoints.

Every endpoint declares the closed set of call parameters it accepts, so a
typo or a stray key fails at the call site instead of producing a request
the service silently ignores.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .codec import (
    ListResponse,
    parse_created_highlight_id,
    parse_highlights_response,
    parse_list_response,
    parse_token_response,
)
from .errors import AuthenticationFailed, ErrorType, RemoteRejected
from .models import Credentials, Highlight
from .signer import SignedRequest, Signer
from .transport import CallResult, Transport

logger = logging.getLogger(__name__)

API_BASE = "https://www.instapaper.com"


@dataclass(frozen=True)
class Endpoint:
    """One remote call: path template plus its allowed parameters."""

    name: str
    path: str
    allowed: frozenset[str] = frozenset()
    required: frozenset[str] = frozenset()
    queueable: bool = False


ENDPOINTS: dict[str, Endpoint] = {
    e.name: e
    for e in [
        Endpoint(
            "access_token",
            "/api/1/oauth/access_token",
            allowed=frozenset({"oauth_callback", "x_auth_mode", "x_auth_username", "x_auth_password"}),
            required=frozenset({"x_auth_mode", "x_auth_username", "x_auth_password"}),
        ),
        Endpoint(
            "list",
            "/api/1/bookmarks/list",
            allowed=frozenset({"limit", "have", "folder_id"}),
        ),
        Endpoint(
            "add",
            "/api/1/bookmarks/add",
            allowed=frozenset({"url", "title", "description"}),
            required=frozenset({"url"}),
            queueable=True,
        ),
        Endpoint(
            "archive",
            "/api/1/bookmarks/archive",
            allowed=frozenset({"bookmark_id"}),
            required=frozenset({"bookmark_id"}),
            queueable=True,
        ),
        Endpoint(
            "star",
            "/api/1/bookmarks/star",
            allowed=frozenset({"bookmark_id"}),
            required=frozenset({"bookmark_id"}),
            queueable=True,
        ),
        Endpoint(
            "unstar",
            "/api/1/bookmarks/unstar",
            allowed=frozenset({"bookmark_id"}),
            required=frozenset({"bookmark_id"}),
            queueable=True,
        ),
        Endpoint(
            "get_text",
            "/api/1/bookmarks/get_text",
            allowed=frozenset({"bookmark_id"}),
            required=frozenset({"bookmark_id"}),
        ),
        Endpoint("highlights", "/api/1.1/bookmarks/{bookmark_id}/highlights"),
        Endpoint(
            "create_highlight",
            "/api/1.1/bookmarks/{bookmark_id}/highlight",
            allowed=frozenset({"text", "position", "note"}),
            required=frozenset({"text", "position"}),
        ),
        Endpoint("delete_highlight", "/api/1.1/highlights/{highlight_id}/delete"),
    ]
}


def get_endpoint(name: str) -> Endpoint:
    try:
        return ENDPOINTS[name]
    except KeyError:
        raise ValueError(f"Unknown endpoint: {name}") from None


def validate_params(endpoint: Endpoint, params: Mapping[str, object]) -> dict[str, str]:
    """
    Check call parameters against the endpoint's closed key set.

    Returns:
        A new dict with every value converted to str

    Raises:
        ValueError: If a key is not allowed or a required key is missing/None
    """
    unknown = set(params) - endpoint.allowed
    if unknown:
        raise ValueError(f"Unexpected parameters for {endpoint.name}: {sorted(unknown)}")
    missing = {k for k in endpoint.required if params.get(k) is None}
    if missing:
        raise ValueError(f"Missing parameters for {endpoint.name}: {sorted(missing)}")
    return {k: str(v) for k, v in params.items() if v is not None}


def format_have(bookmark_ids: Iterable[int]) -> str:
    """Comma-terminated id list for the ``have`` parameter (``""`` when empty)."""
    return "".join(f"{bookmark_id}," for bookmark_id in bookmark_ids)


class ApiClient:
    """Signs and executes calls against the remote service."""

    def __init__(self, signer: Signer, transport: Transport, base_url: str = API_BASE):
        self.signer = signer
        self.transport = transport
        self.base_url = base_url.rstrip("/")

    def url_for(self, name: str, **path_params) -> str:
        """Absolute URL of an endpoint, with path parameters filled in."""
        endpoint = get_endpoint(name)
        try:
            path = endpoint.path.format(**path_params)
        except KeyError as e:
            raise ValueError(f"Missing path parameter {e} for {name}") from None
        return self.base_url + path

    def build_request(
        self,
        name: str,
        url: str,
        params: Mapping[str, object] | None,
        credentials: Credentials | None,
    ) -> SignedRequest:
        """Validate parameters and sign them with a fresh OAuth envelope."""
        endpoint = get_endpoint(name)
        call_params = validate_params(endpoint, params or {})
        return self.signer.sign_request(
            "POST",
            url,
            call_params,
            token=credentials.token if credentials else None,
            token_secret=credentials.token_secret if credentials else None,
        )

    def call(
        self,
        name: str,
        params: Mapping[str, object] | None = None,
        credentials: Credentials | None = None,
        url: str | None = None,
        **path_params,
    ) -> CallResult:
        """Sign and execute one call; returns the classified result."""
        url = url or self.url_for(name, **path_params)
        request = self.build_request(name, url, params, credentials)
        logger.debug(f"POST {url} ({name})")
        return self.transport.execute(request)

    # -------------------------------------------------------------------------
    # Typed calls. These raise on failure instead of returning a CallResult.
    # -------------------------------------------------------------------------

    def access_token(self, username: str, password: str) -> Credentials:
        """
        Exchange a username and password for an access token (xAuth).

        Raises:
            AuthenticationFailed: Credentials rejected or token missing from response
            NetworkError: The call could not be completed
            RemoteRejected: Any other service error
        """
        result = self.call("access_token", {
            "oauth_callback": "oob",
            "x_auth_mode": "client_auth",
            "x_auth_username": username,
            "x_auth_password": password,
        })
        if not result.success:
            if result.error_type == ErrorType.AUTH:
                raise AuthenticationFailed("Invalid username or password")
            result.raise_for_error()

        tokens = parse_token_response(result.body or "")
        token = tokens.get("oauth_token")
        token_secret = tokens.get("oauth_token_secret")
        if not token or not token_secret:
            raise AuthenticationFailed("Missing OAuth tokens in response")
        return Credentials(token=token, token_secret=token_secret, username=username)

    def list_bookmarks(
        self,
        credentials: Credentials,
        have: Iterable[int] = (),
        limit: int = 200,
    ) -> ListResponse:
        """Incremental pull: new/changed bookmarks, their highlights, deleted ids."""
        result = self.call(
            "list",
            {"limit": limit, "have": format_have(have)},
            credentials,
        ).raise_for_error()
        return _decoded(parse_list_response, result.body)

    def get_text(self, credentials: Credentials, bookmark_id: int) -> str:
        """Processed HTML body of one bookmark."""
        result = self.call("get_text", {"bookmark_id": bookmark_id}, credentials).raise_for_error()
        return result.body or ""

    def get_highlights(self, credentials: Credentials, bookmark_id: int) -> list[Highlight]:
        result = self.call("highlights", None, credentials, bookmark_id=bookmark_id).raise_for_error()
        return _decoded(parse_highlights_response, result.body, bookmark_id)

    def create_highlight(self, credentials: Credentials, highlight: Highlight) -> int:
        """Push a locally created highlight; returns the server-assigned id."""
        params: dict[str, object] = {"text": highlight.text, "position": highlight.position}
        if highlight.note:
            params["note"] = highlight.note
        result = self.call(
            "create_highlight", params, credentials, bookmark_id=highlight.bookmark_id
        ).raise_for_error()
        highlight_id = _decoded(parse_created_highlight_id, result.body)
        if highlight_id is None:
            raise RemoteRejected("Highlight response did not include a highlight_id")
        return highlight_id

    def delete_highlight(self, credentials: Credentials, highlight_id: int) -> None:
        self.call("delete_highlight", None, credentials, highlight_id=highlight_id).raise_for_error()


def _decoded(parser, body, *args):
    """Run a codec parser, reporting malformed bodies as a service error."""
    try:
        return parser(body or "", *args)
    except ValueError as e:
        raise RemoteRejected(str(e)) from e
