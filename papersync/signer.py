"""OAuth 1.0a request signing (HMAC-SHA1).

The signature must be bit-exact for the service to accept it:

1. Every key and value is percent-encoded; only ``A-Za-z0-9-_.~`` survive,
   everything else becomes ``%XX`` (uppercase hex of each UTF-8 byte).
2. Parameters are sorted by encoded key and joined as ``key=value`` with ``&``.
3. Base string = ``METHOD & enc(url) & enc(joined parameters)``.
4. Key = ``enc(consumer_secret) & enc(token_secret or "")``.
5. Signature = base64(HMAC-SHA1(key, base string)).

Nothing here performs I/O; a rejected signature only shows up in the
HTTP response.
"""

import base64
import hashlib
import hmac
import secrets
import string
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from urllib.parse import quote

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"
NONCE_LENGTH = 32
NONCE_ALPHABET = string.ascii_letters + string.digits
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class SignedRequest:
    """A request ready for the transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: str


def percent_encode(value) -> str:
    """Percent-encode per RFC 5849 (unreserved: ``A-Za-z0-9-_.~``)."""
    if value is None:
        return ""
    return quote(str(value), safe="")


def generate_nonce(length: int = NONCE_LENGTH) -> str:
    """Random alphanumeric nonce, fresh for every request."""
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def generate_timestamp() -> str:
    """Current Unix time as a decimal string."""
    return str(int(time.time()))


def _encoded_pairs(params: Mapping[str, str]) -> list[tuple[str, str]]:
    return sorted((percent_encode(k), percent_encode(v)) for k, v in params.items())


def normalize_parameters(params: Mapping[str, str]) -> str:
    """Sorted, encoded ``key=value&...`` parameter string."""
    return "&".join(f"{k}={v}" for k, v in _encoded_pairs(params))


def signature_base_string(method: str, url: str, params: Mapping[str, str]) -> str:
    return "&".join([
        method.upper(),
        percent_encode(url),
        percent_encode(normalize_parameters(params)),
    ])


def signing_key(consumer_secret: str, token_secret: str | None = None) -> str:
    return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"


def sign(
    method: str,
    url: str,
    params: Mapping[str, str],
    consumer_secret: str,
    token_secret: str | None = None,
) -> str:
    """
    Compute the base64 HMAC-SHA1 signature for a request.

    Args:
        method: HTTP method (case-insensitive)
        url: Absolute URL without query string
        params: All parameters, OAuth and call-specific
        consumer_secret: Application secret
        token_secret: Per-user token secret (None before login)

    Returns:
        Base64-encoded signature
    """
    base_string = signature_base_string(method, url, params)
    key = signing_key(consumer_secret, token_secret)
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def authorization_header(params: Mapping[str, str]) -> str:
    """``OAuth key="value", ...`` built from the ``oauth_*`` parameters only."""
    oauth_params = {k: v for k, v in params.items() if k.startswith("oauth_")}
    parts = [f'{k}="{v}"' for k, v in _encoded_pairs(oauth_params)]
    return "OAuth " + ", ".join(parts)


def form_body(params: Mapping[str, str]) -> str:
    """Form-encoded body carrying the non-OAuth parameters."""
    return normalize_parameters({k: v for k, v in params.items() if not k.startswith("oauth_")})


class Signer:
    """Builds signed requests for one consumer (application) key pair."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        nonce_factory: Callable[[], str] = generate_nonce,
        clock: Callable[[], str] = generate_timestamp,
    ):
        """
        Initialize the signer.

        Args:
            consumer_key: Application key issued by the service
            consumer_secret: Application secret issued by the service
            nonce_factory: Nonce source (tests pin it for determinism)
            clock: Timestamp source (tests pin it for determinism)
        """
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self._nonce_factory = nonce_factory
        self._clock = clock

    def oauth_params(self, token: str | None = None) -> dict[str, str]:
        """Fresh OAuth envelope parameters (new nonce and timestamp)."""
        params = {
            "oauth_consumer_key": self.consumer_key,
            "oauth_nonce": self._nonce_factory(),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": self._clock(),
            "oauth_version": OAUTH_VERSION,
        }
        if token:
            params["oauth_token"] = token
        return params

    def sign_request(
        self,
        method: str,
        url: str,
        params: Mapping[str, str] | None = None,
        token: str | None = None,
        token_secret: str | None = None,
    ) -> SignedRequest:
        """Merge call parameters into a fresh OAuth envelope and sign them."""
        all_params = self.oauth_params(token)
        for key, value in (params or {}).items():
            all_params[key] = str(value)

        all_params["oauth_signature"] = sign(
            method, url, all_params, self.consumer_secret, token_secret
        )

        return SignedRequest(
            method=method.upper(),
            url=url,
            headers={
                "Authorization": authorization_header(all_params),
                "Content-Type": FORM_CONTENT_TYPE,
            },
            body=form_body(all_params),
        )
