"""
HTTP Transport - thin JSON/text fetcher for provider adapters.

All provider traffic goes through a proxy worker, so a transport is bound
to one base URL and adds the worker's cache hint (``ttl``) to every
request. Failures surface as typed exceptions:

- HttpStatusError: non-2xx status (with a 400-character body sample)
- DecodeError: body that should be JSON but is not
- TransportError: no response at all (DNS, connect, timeout)
- SearchCancelledError: the request's abort signal fired

Usage:
    async with HttpTransport("https://worker.example.org") as transport:
        payload = await transport.fetch_json("/harvard-art/object", {"q": "prints"}, signal=signal)
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import TYPE_CHECKING, Any

import httpx
from typing_extensions import Self

from heritage_search.shared.exceptions import (
    DecodeError,
    ErrorContext,
    HttpStatusError,
    SearchCancelledError,
    TransportError,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from heritage_search.shared.async_utils import AbortSignal

logger = logging.getLogger(__name__)

DEFAULT_WORKER_BASE = "https://art.hicksrch.workers.dev"
DEFAULT_TTL = 3600
SAMPLE_LIMIT = 400

JSON_ACCEPT = "application/json"
XML_ACCEPT = "application/xml,text/xml,application/atom+xml;q=0.9,*/*;q=0.1"

QueryValue = str | int | float | bool | None


def normalize_param(value: QueryValue) -> str | None:
    """Render a query parameter; None for values that should be dropped."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return str(int(value)) if value.is_integer() else repr(value)
    return None


def read_sample(text: str) -> str | None:
    """Truncate a response body for error reports."""
    if not text:
        return None
    if len(text) <= SAMPLE_LIMIT:
        return text
    return f"{text[:SAMPLE_LIMIT]}…"


class HttpTransport:
    """
    Async HTTP transport over ``httpx.AsyncClient``.

    Args:
        base_url: Worker base URL that relative paths resolve against
        timeout: Request timeout in seconds
        default_ttl: Cache hint appended as ``ttl`` unless the caller sets one;
            None disables it
        headers: Default headers for all requests
        client: Pre-built client (tests pass one with ``httpx.MockTransport``);
            a client passed in is not closed by ``close()``
    """

    def __init__(
        self,
        base_url: str = DEFAULT_WORKER_BASE,
        *,
        timeout: float = 30.0,
        default_ttl: int | None = DEFAULT_TTL,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = httpx.URL(base_url)
        self._default_ttl = default_ttl
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {},
            follow_redirects=True,
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    @property
    def base_url(self) -> str:
        return str(self._base_url)

    def build_url(self, path: str, params: Mapping[str, QueryValue] | None = None) -> str:
        """
        Resolve ``path`` against the base URL and merge ``params``.

        Blank values are dropped, later values override parameters already in
        ``path``, and ``ttl`` is added when absent.
        """
        url = self._base_url.join(path)
        merged: dict[str, str] = dict(url.params.items())
        for key, raw in (params or {}).items():
            value = normalize_param(raw)
            if value is not None:
                merged[key] = value
        if self._default_ttl is not None and "ttl" not in merged:
            merged["ttl"] = str(self._default_ttl)
        return str(url.copy_with(params=merged))

    async def fetch_json(
        self,
        path: str,
        params: Mapping[str, QueryValue] | None = None,
        *,
        signal: AbortSignal | None = None,
    ) -> Any:
        """
        GET ``path`` and decode the body as JSON.

        Returns:
            Decoded payload, or None for an empty body
        """
        url = self.build_url(path, params)
        response = await self._get(url, JSON_ACCEPT, signal)
        text = response.text
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError as e:
            raise DecodeError(
                f"Invalid JSON received from {url}",
                url=url,
                sample=read_sample(text),
            ) from e

    async def fetch_text(
        self,
        path: str,
        params: Mapping[str, QueryValue] | None = None,
        *,
        accept: str = XML_ACCEPT,
        signal: AbortSignal | None = None,
    ) -> str:
        """GET ``path`` and return the body as text (Atom/XML feeds)."""
        url = self.build_url(path, params)
        response = await self._get(url, accept, signal)
        return response.text

    async def _get(self, url: str, accept: str, signal: AbortSignal | None) -> httpx.Response:
        if signal is not None:
            signal.raise_if_aborted()

        request = asyncio.ensure_future(self._client.get(url, headers={"Accept": accept}))
        remove = signal.add_listener(request.cancel) if signal is not None else None
        try:
            response = await request
        except asyncio.CancelledError:
            current = asyncio.current_task()
            outer_cancelled = current is not None and current.cancelling() > 0
            if signal is not None and signal.aborted and not outer_cancelled:
                logger.debug(f"Request aborted: {url}")
                raise SearchCancelledError(reason=signal.reason) from None
            raise
        except httpx.TimeoutException as e:
            raise TransportError(f"Request to {url} timed out", context=ErrorContext(url=url)) from e
        except httpx.RequestError as e:
            raise TransportError(f"Request to {url} failed: {e}", context=ErrorContext(url=url)) from e
        finally:
            if remove is not None:
                remove()

        if not response.is_success:
            logger.warning(f"HTTP {response.status_code} from {url}")
            raise HttpStatusError(
                f"Request to {url} failed with status {response.status_code}",
                status=response.status_code,
                url=url,
                content_type=response.headers.get("content-type"),
                sample=read_sample(response.text),
            )
        return response

    async def close(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
