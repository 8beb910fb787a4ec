"""
Shared HTTP client for provider calls.

Maps transport failures and HTTP statuses onto the ProviderError taxonomy
and validates JSON bodies against the provider schemas.
"""

import asyncio
import json
import logging
from functools import lru_cache
from typing import Any, AsyncIterator, Optional

import aiohttp
from pydantic import TypeAdapter, ValidationError

from cryptosage.services.base import (
    DecodeError,
    NetworkError,
    RateLimitError,
    RegionRestrictedError,
    ServerError,
    UnsupportedParameterError,
)

logger = logging.getLogger(__name__)

REGION_RESTRICTED_STATUS = 451
RATE_LIMITED_STATUS = 429
UNSUPPORTED_PARAMETER_STATUS = 400
UNSUPPORTED_PARAMETER_MARKERS = ("Invalid interval",)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def raise_for_status(provider: str, status: int, body: str, url: str) -> None:
    """Raise the ProviderError matching a non-2xx response."""
    if 200 <= status < 300:
        return

    details = {"status": status, "url": url, "body": body[:200]}
    if status == REGION_RESTRICTED_STATUS:
        raise RegionRestrictedError(provider, f"HTTP {status}: restricted location", details)
    if status == UNSUPPORTED_PARAMETER_STATUS and any(
        marker in body for marker in UNSUPPORTED_PARAMETER_MARKERS
    ):
        raise UnsupportedParameterError(provider, f"HTTP {status}: unsupported parameter", details)
    if status == RATE_LIMITED_STATUS:
        raise RateLimitError(provider, f"HTTP {status}: rate limited", details)
    raise ServerError(provider, f"HTTP {status}", details)


def error_text(body: bytes) -> str:
    """Response body as text for status matching and error details."""
    return body.decode("utf-8", errors="replace")


@lru_cache(maxsize=None)
def _adapter(model: Any) -> TypeAdapter:
    return TypeAdapter(model)


def decode(model: Any, payload: Any, provider: str) -> Any:
    """Validate a decoded JSON payload against `model`."""
    try:
        return _adapter(model).validate_python(payload)
    except ValidationError as e:
        raise DecodeError(
            provider,
            f"schema mismatch ({e.error_count()} errors)",
            {"errors": [err.get("msg") for err in e.errors()[:3]]},
        ) from e


class HttpClient:
    """
    Thin wrapper over one aiohttp session.

    Every call is bounded by a total timeout; a timeout is reported as a
    NetworkError like any other connection failure.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._timeout = timeout
        self._session = session

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"User-Agent": USER_AGENT},
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()

    def _request_kwargs(self, params: Optional[dict], timeout: Optional[float]) -> dict:
        kwargs: dict[str, Any] = {"params": params}
        if timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout)
        return kwargs

    async def get_json(
        self,
        url: str,
        params: Optional[dict] = None,
        provider: str = "http",
        timeout: Optional[float] = None,
    ) -> Any:
        """GET a JSON document."""
        session = await self._ensure_session()
        try:
            async with session.get(url, **self._request_kwargs(params, timeout)) as response:
                body = await response.read()
                raise_for_status(provider, response.status, error_text(body), str(response.url))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(provider, f"{type(e).__name__}: {e}", {"url": url}) from e

        # UnicodeDecodeError is a ValueError too
        try:
            return json.loads(body)
        except ValueError as e:
            raise DecodeError(provider, f"invalid JSON: {e}", {"url": url}) from e

    async def get_model(
        self,
        url: str,
        model: Any,
        params: Optional[dict] = None,
        provider: str = "http",
        timeout: Optional[float] = None,
    ) -> Any:
        """GET a JSON document and validate it against `model`."""
        payload = await self.get_json(url, params=params, provider=provider, timeout=timeout)
        return decode(model, payload, provider)

    async def iter_chunks(
        self,
        url: str,
        provider: str = "http",
        chunk_size: int = 8192,
    ) -> AsyncIterator[bytes]:
        """Stream a response body, e.g. to feed an incremental XML parser."""
        session = await self._ensure_session()
        try:
            async with session.get(url) as response:
                if not 200 <= response.status < 300:
                    body = await response.read()
                    raise_for_status(provider, response.status, error_text(body), str(response.url))
                async for chunk in response.content.iter_chunked(chunk_size):
                    yield chunk
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(provider, f"{type(e).__name__}: {e}", {"url": url}) from e
