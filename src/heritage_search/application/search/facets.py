"""
Client-side facet computation.

Facets are derived from the current aggregate, not from the server, so
they change as "load more" appends pages. One scan over the items builds
a count multiset per dimension.

Ordering:
    COUNT     - count descending, then label ascending (open vocabularies
                such as author or classification)
    SEMANTIC  - a fixed natural order (closed vocabularies such as year
                or decade), optionally reversed

Selected values that no longer occur in the aggregate are still listed
with count 0 and ``selected=True`` so they can be deselected.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from heritage_search.models import FacetGroup, FacetValue

if TYPE_CHECKING:
    from heritage_search.models import QueryState, ResultItem

_YEAR_RE = re.compile(r"(?<!\d)(\d{4})(?!\d)")


class FacetOrdering(Enum):
    COUNT = "count"
    SEMANTIC = "semantic"


def natural_key(value: str) -> tuple[int, float | str]:
    """Numbers first in numeric order, then text case-insensitively."""
    try:
        return (0, float(value))
    except ValueError:
        return (1, value.casefold())


@dataclass(frozen=True)
class FacetDimension:
    """
    One facet dimension.

    Args:
        key: Facet key, matching the codec's facet parameter
        label: Display label
        extract: Item -> values; defaults to ``item.facets[key]``
        ordering: COUNT for open vocabularies, SEMANTIC for closed ones
        semantic_key: Sort key for SEMANTIC ordering (default natural_key)
        reverse: Reverse the SEMANTIC order (e.g. newest year first)
        limit: Show at most this many values (selected values always shown)
    """

    key: str
    label: str
    extract: Callable[[ResultItem], Iterable[str]] | None = None
    ordering: FacetOrdering = FacetOrdering.COUNT
    semantic_key: Callable[[str], Any] | None = None
    reverse: bool = False
    limit: int | None = None

    def values_of(self, item: ResultItem) -> set[str]:
        raw = self.extract(item) if self.extract else item.facets.get(self.key, ())
        values = {str(v).strip() for v in raw if v is not None}
        values.discard("")
        return values

    def order(self, counts: Counter[str]) -> list[tuple[str, int]]:
        entries = list(counts.items())
        if self.ordering is FacetOrdering.SEMANTIC:
            key_fn = self.semantic_key or natural_key
            entries.sort(key=lambda e: key_fn(e[0]), reverse=self.reverse)
        else:
            entries.sort(key=lambda e: (-e[1], e[0].casefold(), e[0]))
        return entries


def compute_facets(
    items: Sequence[ResultItem],
    dimensions: Sequence[FacetDimension],
    query: QueryState | None = None,
) -> list[FacetGroup]:
    """
    Build facet groups for the aggregate.

    Args:
        items: Current aggregate
        dimensions: Facet dimensions to compute
        query: Current query; its selected values are flagged and retained

    Returns:
        One FacetGroup per dimension, in dimension order
    """
    counters: dict[str, Counter[str]] = {d.key: Counter() for d in dimensions}
    for item in items:
        for dim in dimensions:
            counters[dim.key].update(dim.values_of(item))

    groups: list[FacetGroup] = []
    for dim in dimensions:
        counts = counters[dim.key]
        selected = query.selected(dim.key) if query is not None else ()
        entries = dim.order(counts)
        if dim.limit is not None:
            entries = entries[: dim.limit]
        listed = {value for value, _ in entries}
        for value in selected:
            if value not in listed:
                entries.append((value, counts.get(value, 0)))
                listed.add(value)
        chosen = set(selected)
        groups.append(
            FacetGroup(
                key=dim.key,
                label=dim.label,
                values=[FacetValue(value=v, count=c, selected=v in chosen) for v, c in entries],
            )
        )
    return groups


# =============================================================================
# Extractors for date-derived closed vocabularies
# =============================================================================


def year_of(date: str | None) -> str | None:
    """First standalone four-digit year in a free-form date string."""
    if not date:
        return None
    match = _YEAR_RE.search(date)
    return match.group(1) if match else None


def decade_of(date: str | None) -> str | None:
    year = year_of(date)
    if year is None:
        return None
    return f"{int(year) // 10 * 10}s"


def century_of(date: str | None) -> str | None:
    year = year_of(date)
    if year is None:
        return None
    century = (int(year) - 1) // 100 + 1
    suffix = "th" if 10 <= century % 100 <= 20 else {1: "st", 2: "nd", 3: "rd"}.get(century % 10, "th")
    return f"{century}{suffix} century"


def date_extractor(fn: Callable[[str | None], str | None]) -> Callable[[ResultItem], list[str]]:
    """Adapt a date helper into a FacetDimension extractor."""

    def extract(item: ResultItem) -> list[str]:
        value = fn(item.date)
        return [value] if value else []

    return extract
