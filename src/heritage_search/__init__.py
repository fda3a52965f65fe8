"""
Heritage Search - Search-session engine for cultural-heritage catalogues

Keeps a paginated or infinite-scroll result list consistent with a
canonical, URL-backed query while requests to slow upstream providers
overlap, get cancelled, or fail.

Usage:
    from heritage_search import InMemoryHistory, QueryCodec, QueryState, SearchSession, UrlStateStore

    codec = QueryCodec(facet_keys=("century",))
    store = UrlStateStore(codec, InMemoryHistory())
    session = SearchSession(source.search, codec, store=store, render=print)

    async with session:
        session.submit(QueryState(term="prints"))
        await session.wait()
        session.load_more()

Features:
    - Canonical query codec (URL <-> state <-> cache key)
    - Stale-response-immune request coordination with abort tokens
    - Idempotent "load more" with background prefetch
    - Client-side facets over the aggregate
    - Fan-out search across independent sources
    - Saved searches per source
"""

from .application.search import (
    CodecDefaults,
    FacetDimension,
    FacetOrdering,
    FanOutAggregator,
    QueryCodec,
    SearchSession,
    SourceDefinition,
)
from .application.session import InMemoryHistory, SavedSearchStore, UrlStateStore
from .infrastructure.cache import QueryCache
from .models import QueryState, ResultItem, ResultPage, SessionState, SessionStatus
from .shared import AbortController, AbortSignal, HeritageSearchError

__version__ = "0.1.0"

__all__ = [
    # Engine
    "SearchSession",
    "FanOutAggregator",
    "SourceDefinition",
    # Query state
    "CodecDefaults",
    "QueryCodec",
    "QueryState",
    "UrlStateStore",
    "InMemoryHistory",
    # Results
    "ResultItem",
    "ResultPage",
    "SessionState",
    "SessionStatus",
    "FacetDimension",
    "FacetOrdering",
    # Supporting services
    "QueryCache",
    "SavedSearchStore",
    "AbortController",
    "AbortSignal",
    "HeritageSearchError",
]
