"""
Base Search Source - binds a worker endpoint to the session's search contract.

A SearchSession only knows ``search(query, signal) -> ResultPage``. Provider
adapters subclass SearchSource and supply two pieces:

- ``build_params(query)``: QueryState -> request parameters
- ``parse(payload, query)``: decoded payload -> ResultPage

Everything else (URL building, the ttl hint, error mapping, abort handling)
comes from the shared HttpTransport.

Example:
    class MuseumSource(SearchSource):
        key = "museum"
        label = "Museum"
        path = "/museum/search"

        def build_params(self, query):
            return {"q": query.term, "page": query.page, "size": query.size}

        def parse(self, payload, query):
            items = [to_item(r) for r in payload["records"]]
            total = payload["total"]
            return ResultPage(items, total, next_page_from_total(query.page, query.size, total))

    session = SearchSession(MuseumSource(transport), codec)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from heritage_search.shared.exceptions import DataError, ErrorContext

if TYPE_CHECKING:
    from heritage_search.application.search.fanout import SourceDefinition
    from heritage_search.infrastructure.http.client import HttpTransport, QueryValue
    from heritage_search.models import QueryState, ResultPage
    from heritage_search.shared.async_utils import AbortSignal

logger = logging.getLogger(__name__)


class SearchSource(ABC):
    """
    Base class for provider adapters.

    Subclasses set ``key``, ``label`` and ``path`` and implement
    ``build_params`` and ``parse``. Set ``expect_json = False`` for
    Atom/XML endpoints; ``parse`` then receives the body text.
    """

    key: str = "source"
    label: str = "Source"
    path: str = "/"
    type_label: str = ""
    description: str = ""
    supports_images: bool = False
    expect_json: bool = True

    def __init__(self, transport: HttpTransport) -> None:
        self._transport = transport

    @abstractmethod
    def build_params(self, query: QueryState) -> Mapping[str, QueryValue]:
        """Map a QueryState onto request parameters."""

    @abstractmethod
    def parse(self, payload: Any, query: QueryState) -> ResultPage:
        """Map a decoded payload onto a ResultPage."""

    async def search(self, query: QueryState, signal: AbortSignal) -> ResultPage:
        params = self.build_params(query)
        if self.expect_json:
            payload = await self._transport.fetch_json(self.path, params, signal=signal)
        else:
            payload = await self._transport.fetch_text(self.path, params, signal=signal)
        signal.raise_if_aborted()

        try:
            page = self.parse(payload, query)
        except (KeyError, TypeError, ValueError) as e:
            raise DataError(
                f"{self.label}: unexpected response shape ({e})",
                context=ErrorContext(source=self.key, operation="parse"),
            ) from e
        logger.debug(f"{self.key}: {len(page.items)} items (total={page.total})")
        return page

    async def __call__(self, query: QueryState, signal: AbortSignal) -> ResultPage:
        return await self.search(query, signal)

    def definition(self, *, default_enabled: bool = True) -> SourceDefinition:
        """Describe this source for the fan-out aggregator."""
        from heritage_search.application.search.fanout import SourceDefinition

        return SourceDefinition(
            key=self.key,
            label=self.label,
            search=self.search,
            type_label=self.type_label,
            description=self.description,
            default_enabled=default_enabled,
            supports_images=self.supports_images,
        )


# =============================================================================
# Payload helpers
# =============================================================================


def ensure_https(value: Any) -> str | None:
    """Upgrade ``http://`` links; None for blank or non-string values."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if trimmed.startswith("http://"):
        return f"https://{trimmed[len('http://'):]}"
    return trimmed


def to_list(value: Any) -> list[str]:
    """Coerce a scalar-or-list payload field into trimmed non-empty strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, list | tuple):
        return [s for s in (str(v).strip() for v in value if v is not None) if s]
    return []
