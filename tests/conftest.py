"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
import tempfile
from dataclasses import dataclass
from pathlib import Path

import pytest

from heritage_search.application.search.codec import QueryCodec
from heritage_search.application.search.facets import FacetDimension, FacetOrdering
from heritage_search.application.session.url_store import InMemoryHistory, UrlStateStore
from heritage_search.models import QueryState, ResultItem, ResultPage
from heritage_search.shared.async_utils import AbortSignal

# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ============================================================
# Result Builders
# ============================================================


def build_items(count: int, *, prefix: str = "item", start: int = 0, **facets: list[str]) -> list[ResultItem]:
    return [
        ResultItem(
            id=f"{prefix}-{start + i}",
            title=f"{prefix.title()} {start + i}",
            facets={k: list(v) for k, v in facets.items()},
        )
        for i in range(count)
    ]


@pytest.fixture
def make_items():
    """Factory for numbered ResultItems."""
    return build_items


@pytest.fixture
def make_page():
    """Factory for ResultPages of numbered items."""

    def _make(
        count: int,
        *,
        total: int | None = None,
        continuation: int | str | None = None,
        prefix: str = "item",
        start: int = 0,
    ) -> ResultPage:
        return ResultPage(
            items=build_items(count, prefix=prefix, start=start),
            total=total,
            continuation=continuation,
        )

    return _make


# ============================================================
# Search Doubles
# ============================================================


@dataclass
class SearchCall:
    query: QueryState
    signal: AbortSignal
    future: asyncio.Future[ResultPage]

    def resolve(self, page: ResultPage) -> None:
        if not self.future.done():
            self.future.set_result(page)

    def reject(self, error: BaseException) -> None:
        if not self.future.done():
            self.future.set_exception(error)


class FakeSearch:
    """
    ``search(query, signal)`` double whose calls stay pending until the test
    settles them through ``resolve`` / ``reject``.
    """

    def __init__(self) -> None:
        self.calls: list[SearchCall] = []

    async def __call__(self, query: QueryState, signal: AbortSignal) -> ResultPage:
        future: asyncio.Future[ResultPage] = asyncio.get_running_loop().create_future()
        self.calls.append(SearchCall(query, signal, future))
        return await future

    @property
    def last(self) -> SearchCall:
        return self.calls[-1]

    def for_page(self, page: int) -> list[SearchCall]:
        return [c for c in self.calls if c.query.page == page]

    def for_term(self, term: str) -> list[SearchCall]:
        return [c for c in self.calls if c.query.term == term]


@pytest.fixture
def fake_search():
    """Controllable search function."""
    return FakeSearch()


@pytest.fixture
def search_factory():
    """Factory for independent controllable search functions."""
    return FakeSearch


@pytest.fixture
def flush():
    """Let pending tasks run until the loop is quiet."""

    async def _flush(rounds: int = 5) -> None:
        for _ in range(rounds):
            await asyncio.sleep(0)

    return _flush


# ============================================================
# Codec / Store Fixtures
# ============================================================


@pytest.fixture
def codec():
    """Codec for a catalogue with classification, century and year facets."""
    return QueryCodec(
        facet_keys=("classification", "century", "year"),
        numeric_facets=("year",),
        sort_options=("relevance", "title", "date"),
    )


@pytest.fixture
def history():
    return InMemoryHistory()


@pytest.fixture
def store(codec, history):
    return UrlStateStore(codec, history)


@pytest.fixture
def dimensions():
    return (
        FacetDimension(key="classification", label="Classification"),
        FacetDimension(
            key="century",
            label="Century",
            ordering=FacetOrdering.SEMANTIC,
        ),
    )
