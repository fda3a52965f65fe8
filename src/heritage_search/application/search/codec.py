"""
QueryCodec - Canonical mapping between QueryState and URL parameters.

The codec is the only place that knows how search intent looks in a URL.
The cache key is the serialized form, so the codec's normalization rules
decide which intents share cached pages.

Serialization rules:
    - The term is emitted when non-empty.
    - Scalar fields (page, size, sort, order) equal to their default are
      omitted while the term is empty, and always emitted once a search
      is active. Shareable URLs depend on this staying stable.
    - Facets serialize as repeated parameters in configured dimension
      order, deduplicated and sorted. On input, comma-joined values
      (``century=19th,20th``) are split like repeated parameters.
    - Numeric fields are clamped; unparseable input falls back to the
      default instead of raising.

Example:
    >>> codec = QueryCodec(facet_keys=("century",))
    >>> codec.to_query_string(QueryState(term="prints", facets={"century": ("20th", "19th")}))
    'q=prints&page=1&size=12&sort=relevance&order=descending&century=19th&century=20th'
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode

from heritage_search.models import (
    DEFAULT_ORDER,
    DEFAULT_PAGE,
    DEFAULT_SIZE,
    DEFAULT_SORT,
    QueryState,
)
from heritage_search.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

UrlParams = list[tuple[str, str]]
ParamsInput = str | Mapping[str, str | Sequence[str]] | Iterable[tuple[str, str]]

ORDER_OPTIONS = ("ascending", "descending")


@dataclass(frozen=True)
class CodecDefaults:
    """Values assumed when a field is absent from the URL."""

    page: int = DEFAULT_PAGE
    size: int = DEFAULT_SIZE
    sort: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER


def _to_pairs(params: ParamsInput) -> UrlParams:
    if isinstance(params, str):
        return parse_qsl(params.lstrip("?"), keep_blank_values=False)
    if isinstance(params, Mapping):
        pairs: UrlParams = []
        for key, value in params.items():
            if isinstance(value, str):
                pairs.append((key, value))
            else:
                pairs.extend((key, v) for v in value)
        return pairs
    return [(str(k), str(v)) for k, v in params]


def _parse_int(value: str | int | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value.strip())
    except ValueError:
        return None


def _split_list(value: str | int) -> list[str]:
    # "19th,20th" and repeated parameters both denote a multi-value facet
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _text_sort_key(value: str) -> tuple[str, str]:
    return (value.casefold(), value)


class QueryCodec:
    """
    Bidirectional QueryState <-> URL parameter mapping for one search surface.

    Args:
        facet_keys: Facet dimensions, in serialization order
        numeric_facets: Subset of facet_keys whose values are integers (e.g. year)
        sort_options: Allowed sort keys; empty accepts any non-blank key
        defaults: Defaults for absent scalar fields
        min_size / max_size: Page size clamp range
        *_param: URL parameter names
    """

    def __init__(
        self,
        *,
        facet_keys: Sequence[str] = (),
        numeric_facets: Iterable[str] = (),
        sort_options: Sequence[str] = (DEFAULT_SORT,),
        defaults: CodecDefaults | None = None,
        min_size: int = 5,
        max_size: int = 100,
        term_param: str = "q",
        page_param: str = "page",
        size_param: str = "size",
        sort_param: str = "sort",
        order_param: str = "order",
        cursor_param: str = "cursor",
    ) -> None:
        self.facet_keys = tuple(facet_keys)
        self.numeric_facets = frozenset(numeric_facets)
        self.sort_options = tuple(sort_options)
        self.defaults = defaults or CodecDefaults()
        self.min_size = min_size
        self.max_size = max_size
        self.term_param = term_param
        self.page_param = page_param
        self.size_param = size_param
        self.sort_param = sort_param
        self.order_param = order_param
        self.cursor_param = cursor_param

        if min_size < 1 or min_size > max_size:
            raise ConfigurationError(f"Invalid page size range: {min_size}..{max_size}")
        if not self.numeric_facets <= set(self.facet_keys):
            raise ConfigurationError("numeric_facets must be a subset of facet_keys")
        scalar_params = {term_param, page_param, size_param, sort_param, order_param, cursor_param}
        if scalar_params & set(self.facet_keys):
            raise ConfigurationError("Facet keys collide with scalar parameter names")
        if self.sort_options and self.defaults.sort not in self.sort_options:
            raise ConfigurationError(f"Default sort {self.defaults.sort!r} not in sort options")

    # ------------------------------------------------------------------
    # Field normalization
    # ------------------------------------------------------------------

    def clamp_size(self, value: str | int | None) -> int:
        size = _parse_int(value)
        if size is None:
            return self.defaults.size
        return max(self.min_size, min(self.max_size, size))

    def clamp_page(self, value: str | int | None) -> int:
        page = _parse_int(value)
        if page is None or page < 1:
            return self.defaults.page
        return page

    def _sort(self, value: str | None) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            return self.defaults.sort
        if self.sort_options and cleaned not in self.sort_options:
            return self.defaults.sort
        return cleaned

    def _order(self, value: str | None) -> str:
        cleaned = (value or "").strip()
        return cleaned if cleaned in ORDER_OPTIONS else self.defaults.order

    def _facet_values(self, key: str, values: Iterable[str | int]) -> tuple[str, ...]:
        parts = [part for v in values for part in _split_list(v)]
        if key in self.numeric_facets:
            numbers = {n for n in (_parse_int(p) for p in parts) if n is not None}
            return tuple(str(n) for n in sorted(numbers))
        cleaned = set(parts)
        return tuple(sorted(cleaned, key=_text_sort_key))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def normalize(self, state: QueryState) -> QueryState:
        """Apply every normalization rule; unknown facet keys are dropped."""
        facets: dict[str, tuple[str, ...]] = {}
        for key in self.facet_keys:
            values = self._facet_values(key, state.facets.get(key, ()))
            if values:
                facets[key] = values
        cursor = (state.cursor or "").strip() or None
        return QueryState(
            term=state.term.strip(),
            facets=facets,
            sort=self._sort(state.sort),
            order=self._order(state.order),
            size=self.clamp_size(state.size),
            page=self.clamp_page(state.page),
            cursor=cursor,
        )

    def parse(self, params: ParamsInput) -> QueryState:
        """Parse URL parameters into a normalized QueryState. Never raises on bad input."""
        multi: dict[str, list[str]] = {}
        for key, value in _to_pairs(params):
            multi.setdefault(key, []).append(value)

        def first(name: str) -> str | None:
            values = multi.get(name)
            return values[0] if values else None

        facets = {key: tuple(multi[key]) for key in self.facet_keys if key in multi}
        return self.normalize(
            QueryState(
                term=first(self.term_param) or "",
                facets=facets,
                sort=first(self.sort_param) or self.defaults.sort,
                order=first(self.order_param) or self.defaults.order,
                size=self.clamp_size(first(self.size_param)),
                page=self.clamp_page(first(self.page_param)),
                cursor=first(self.cursor_param),
            )
        )

    def serialize(self, state: QueryState) -> UrlParams:
        """Serialize to ordered URL parameters, applying conditional default omission."""
        s = self.normalize(state)
        d = self.defaults
        active = bool(s.term)
        params: UrlParams = []
        if active:
            params.append((self.term_param, s.term))
        scalars = (
            (self.page_param, str(s.page), s.page != d.page),
            (self.size_param, str(s.size), s.size != d.size),
            (self.sort_param, s.sort, s.sort != d.sort),
            (self.order_param, s.order, s.order != d.order),
        )
        for name, value, differs in scalars:
            if active or differs:
                params.append((name, value))
        if s.cursor:
            params.append((self.cursor_param, s.cursor))
        for key in self.facet_keys:
            params.extend((key, value) for value in s.facets.get(key, ()))
        return params

    def to_query_string(self, state: QueryState) -> str:
        return urlencode(self.serialize(state))

    def cache_key(self, state: QueryState) -> str:
        """Deterministic key; equal iff the two states are semantically equivalent."""
        return self.to_query_string(state)
