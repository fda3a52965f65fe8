"""
QueryState - Canonical Search Intent

One normalized representation of what the user asked for. Both the URL
query string and the cache key are derived from it by the QueryCodec,
so two equivalent intents must normalize to equal QueryState values.

Example:
    >>> state = QueryState(term="prints", facets={"century": ("19th",)})
    >>> state.has_term
    True
    >>> state.with_facet_toggled("century", "19th").facets
    {}
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

DEFAULT_PAGE = 1
DEFAULT_SIZE = 12
DEFAULT_SORT = "relevance"
DEFAULT_ORDER = "descending"

Continuation = int | str


@dataclass(frozen=True)
class QueryState:
    """
    Canonical search intent.

    Attributes:
        term: Free-text query, trimmed
        facets: Selected values per facet key; empty selections are absent
        sort: Sort key
        order: "ascending" or "descending"
        size: Page size
        page: 1-based page number
        cursor: Opaque continuation cursor for cursor-paginated sources
    """

    term: str = ""
    facets: dict[str, tuple[str, ...]] = field(default_factory=dict)
    sort: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER
    size: int = DEFAULT_SIZE
    page: int = DEFAULT_PAGE
    cursor: str | None = None

    @property
    def has_term(self) -> bool:
        return bool(self.term.strip())

    def selected(self, key: str) -> tuple[str, ...]:
        """Values selected for a facet dimension."""
        return self.facets.get(key, ())

    def replace(self, **changes: Any) -> QueryState:
        return dataclasses.replace(self, **changes)

    def first_page(self) -> QueryState:
        """Same intent, rewound to the first page."""
        return dataclasses.replace(self, page=DEFAULT_PAGE, cursor=None)

    def with_facet_toggled(self, key: str, value: str) -> QueryState:
        """Select or deselect a facet value; always rewinds to the first page."""
        current = list(self.selected(key))
        if value in current:
            current.remove(value)
        else:
            current.append(value)
        facets = dict(self.facets)
        if current:
            facets[key] = tuple(current)
        else:
            facets.pop(key, None)
        return dataclasses.replace(self, facets=facets, page=DEFAULT_PAGE, cursor=None)

    def with_facet_cleared(self, key: str) -> QueryState:
        facets = {k: v for k, v in self.facets.items() if k != key}
        return dataclasses.replace(self, facets=facets, page=DEFAULT_PAGE, cursor=None)

    def with_continuation(self, marker: Continuation) -> QueryState:
        """
        State addressing the page a continuation marker points at.

        Integer markers are page numbers; string markers are opaque cursors.
        """
        if isinstance(marker, bool):
            raise TypeError("continuation marker must be int or str")
        if isinstance(marker, int):
            return dataclasses.replace(self, page=marker, cursor=None)
        return dataclasses.replace(self, cursor=marker)

    def to_dict(self) -> dict[str, Any]:
        return {
            "term": self.term,
            "facets": {k: list(v) for k, v in self.facets.items()},
            "sort": self.sort,
            "order": self.order,
            "size": self.size,
            "page": self.page,
            "cursor": self.cursor,
        }
