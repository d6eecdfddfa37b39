"""
OAuth 1.0a token-based authentication (HMAC-SHA256) for httpx.

The signature base string covers the method, the URL without its query
string, and every OAuth and query parameter sorted by name.
"""

import base64
import hashlib
import hmac
import secrets
import time
from collections.abc import Callable, Generator
from urllib.parse import quote

import httpx

SIGNATURE_METHOD = "HMAC-SHA256"


def percent_encode(value: str) -> str:
    """RFC 3986 percent-encoding as required by OAuth 1.0a."""
    return quote(value, safe="-._~")


class OAuth1Auth(httpx.Auth):
    """
    Signs each request with an OAuth 1.0a Authorization header.

    Attributes:
        realm: Account realm placed first in the header
    """

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        token_id: str,
        token_secret: str,
        realm: str,
        nonce_factory: Callable[[], str] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.token_id = token_id
        self.token_secret = token_secret
        self.realm = realm
        self._nonce_factory = nonce_factory or (lambda: secrets.token_hex(16))
        self._clock = clock or time.time

    def oauth_params(self) -> dict[str, str]:
        return {
            "oauth_consumer_key": self.consumer_key,
            "oauth_token": self.token_id,
            "oauth_nonce": self._nonce_factory(),
            "oauth_timestamp": str(int(self._clock())),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_version": "1.0",
        }

    def signature(self, method: str, url: httpx.URL, oauth_params: dict[str, str]) -> str:
        """
        Compute the base64 HMAC-SHA256 signature of a request.

        Args:
            method: HTTP method
            url: Full request URL; its query parameters are signed too
            oauth_params: The oauth_* parameters of this request
        """
        params = list(oauth_params.items()) + list(url.params.multi_items())
        encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params)
        normalized = "&".join(f"{k}={v}" for k, v in encoded)
        base_url = str(url).split("?", 1)[0].split("#", 1)[0]
        base_string = "&".join([
            method.upper(),
            percent_encode(base_url),
            percent_encode(normalized),
        ])
        key = f"{percent_encode(self.consumer_secret)}&{percent_encode(self.token_secret)}"
        digest = hmac.new(key.encode(), base_string.encode(), hashlib.sha256).digest()
        return base64.b64encode(digest).decode()

    def authorization_header(self, method: str, url: httpx.URL) -> str:
        params = self.oauth_params()
        params["oauth_signature"] = self.signature(method, url, params)
        fields = ", ".join(
            f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted(params.items())
        )
        return f'OAuth realm="{self.realm}", {fields}'

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = self.authorization_header(request.method, request.url)
        yield request
