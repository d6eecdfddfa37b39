"""
Shared pieces of the upstream client adapters.

Adapters fetch one page at a time and do not retry; any transport or HTTP
failure surfaces as UpstreamError so the orchestrator can abort the run.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from finsync.observability.logger import get_logger
from finsync.sync.errors import UpstreamError

logger = get_logger(__name__)

MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100
DEFAULT_TIMEOUT_S = 60.0
BODY_SNIPPET_LENGTH = 500

_STATUS_REASONS = {
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    429: "Rate limited",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


@dataclass
class UpstreamPage:
    """
    One page of raw records.

    Attributes:
        items: Raw records, in upstream order
        total_estimate: Upstream's own count of matching records, if reported;
            advisory only
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    total_estimate: int | None = None


class UpstreamClient(Protocol):
    """Paged access to one upstream system."""

    system: str

    async def fetch_page(
        self,
        entity: str,
        date_from: str,
        date_to: str,
        page_size: int,
        offset: int,
    ) -> UpstreamPage:
        ...


def clamp_page_size(page_size: int) -> int:
    return max(MIN_PAGE_SIZE, min(MAX_PAGE_SIZE, page_size))


def as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class HttpUpstreamClient:
    """
    Base for httpx-backed adapters.

    Owns its AsyncClient unless one is injected.
    """

    system = "upstream"

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        auth: httpx.Auth | None = None,
        headers: Mapping[str, str] | None = None,
    ):
        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(timeout=timeout_s)
        self._auth = auth
        self._headers = {"Accept": "application/json", **(headers or {})}

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def _get_json(self, url: str, params: Mapping[str, str] | None = None) -> dict[str, Any]:
        """
        GET a JSON object.

        Raises:
            UpstreamError: On transport failures, non-2xx responses or non-JSON bodies
        """
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._headers,
                auth=self._auth if self._auth is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except httpx.HTTPError as e:
            raise UpstreamError(f"{self.system} request failed: {type(e).__name__}: {e}") from e

        if response.status_code >= 400:
            body = response.text[:BODY_SNIPPET_LENGTH]
            reason = _STATUS_REASONS.get(response.status_code, "HTTP error")
            logger.error(
                "Upstream request rejected",
                extra={
                    "system": self.system,
                    "status_code": response.status_code,
                    "url": str(response.request.url),
                    "body": body,
                },
            )
            raise UpstreamError(
                f"{self.system} API error: {response.status_code} {reason}",
                status_code=response.status_code,
                body_snippet=body,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamError(
                f"{self.system} returned a non-JSON body",
                status_code=response.status_code,
                body_snippet=response.text[:BODY_SNIPPET_LENGTH],
            ) from e

        if not isinstance(payload, dict):
            raise UpstreamError(
                f"{self.system} returned {type(payload).__name__}, expected an object",
                status_code=response.status_code,
            )
        return payload
