"""
ResultAggregator - running result set for paginated and infinite-scroll views.

Merge modes:
    REPLACE - new query, facet or sort change: the aggregate becomes the page
    APPEND  - continuation: the page is appended, at most once per cache key

Continuation policies decide whether a page exposes a next page. Sources
that report a total use the total; sources that do not fall back to the
``len(items) == size`` heuristic, which can both under- and over-report
and is kept as an accepted approximation.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from heritage_search.models import Continuation, ResultItem, ResultPage

logger = logging.getLogger(__name__)


class MergeMode(Enum):
    REPLACE = "replace"
    APPEND = "append"


class ResultAggregator:
    """
    Aggregate of the pages loaded for the current query.

    Example:
        aggregator = ResultAggregator()
        aggregator.merge("q=prints&page=1", page1, MergeMode.REPLACE)
        aggregator.merge("q=prints&page=2", page2, MergeMode.APPEND)
        aggregator.merge("q=prints&page=2", page2, MergeMode.APPEND)  # no-op
    """

    def __init__(self) -> None:
        self.items: list[ResultItem] = []
        self.total: int | None = None
        self.continuation: Continuation | None = None
        self._loaded_keys: set[str] = set()

    def merge(self, key: str, page: ResultPage, mode: MergeMode) -> bool:
        """
        Merge a page into the aggregate.

        Returns:
            False when an append for an already-loaded key was ignored
        """
        if mode is MergeMode.APPEND and key in self._loaded_keys:
            logger.debug(f"Ignoring duplicate append for {key}")
            return False

        if mode is MergeMode.REPLACE:
            self._loaded_keys.clear()
            self.items = list(page.items)
        else:
            # New list so earlier render() snapshots are never mutated
            self.items = [*self.items, *page.items]

        self._loaded_keys.add(key)
        self.total = page.total
        self.continuation = page.continuation
        return True

    def is_loaded(self, key: str) -> bool:
        return key in self._loaded_keys

    @property
    def has_more(self) -> bool:
        return self.continuation is not None

    def reset(self) -> None:
        self.items = []
        self.total = None
        self.continuation = None
        self._loaded_keys.clear()


# =============================================================================
# Continuation policies
# =============================================================================


def next_page_from_total(page: int, size: int, total: int | None) -> int | None:
    """Page-numbered sources with a reported total."""
    if total is None:
        return None
    return page + 1 if page * size < total else None


def next_offset_from_total(start: int, size: int, total: int | None) -> int | None:
    """Offset-addressed sources (start/max_results) with a reported total."""
    if total is None:
        return None
    return start + size if start + size < total else None


def next_page_from_page_size(items: Sequence[ResultItem], page: int, size: int) -> int | None:
    """
    Heuristic for sources that omit a total: a full page implies more.

    A last page that happens to be exactly full over-reports; a short page
    from a source that filters client-side under-reports.
    """
    return page + 1 if len(items) == size else None
