"""Thin JSON-over-HTTP client shared by the httpx-based provider adapters.

Owns the timeout and turns every transport or status failure into a typed
ProviderError, so adapters only deal with successful payloads.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import httpx

from prsignal_core.errors import (
    InvalidResponse,
    ProviderTimeout,
    ProviderUnavailable,
    RateLimitExceeded,
    error_for_status,
)

logger = logging.getLogger(__name__)

USER_AGENT = "prsignal/0.1"


class JsonHttpClient:
    def __init__(
        self,
        provider: str,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.provider = provider
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def get(self, url: str, *, headers: dict[str, str], params: dict[str, Any] | None = None) -> httpx.Response:
        """GET a path (relative to base_url) or an absolute URL; raise on any non-2xx."""
        try:
            response = self._client.get(url, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise ProviderTimeout(self.provider, f"request to {url} timed out") from e
        except httpx.TransportError as e:
            raise ProviderUnavailable(self.provider, f"request to {url} failed: {e}") from e

        if response.status_code == 429 or (
            response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0"
        ):
            raise RateLimitExceeded(
                self.provider,
                f"rate limit exceeded for {url}",
                response.status_code,
                reset_at=_parse_reset(response.headers),
            )
        if not response.is_success:
            raise error_for_status(self.provider, response.status_code, f"GET {url} failed")
        return response

    def get_json(self, url: str, *, headers: dict[str, str], params: dict[str, Any] | None = None) -> Any:
        return self.decode(self.get(url, headers=headers, params=params))

    def decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError are both ValueErrors
            raise InvalidResponse(self.provider, f"{response.request.url} returned invalid JSON") from e


@contextmanager
def translate_payload_errors(provider: str, action: str):
    """Turn a payload that decodes but does not have the expected shape into InvalidResponse."""
    try:
        yield
    except (KeyError, IndexError, TypeError, AttributeError, ValueError) as e:
        raise InvalidResponse(provider, f"{action}: unexpected payload ({type(e).__name__}: {e})") from e


def _parse_reset(headers: httpx.Headers) -> datetime | None:
    value = headers.get("X-RateLimit-Reset") or headers.get("RateLimit-Reset")
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        logger.debug("Ignoring unparseable rate-limit reset header: %r", value)
        return None


def parse_datetime(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp from a provider payload into an aware UTC datetime."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable timestamp: %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
